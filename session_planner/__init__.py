"""
학습 세션 스케줄러 코어
- 세션 시간 충돌 검사 / 대안 시간 제안
- 세션 시간 편집 기록
- 놓친 세션 건너뛰기 / 재배치
"""

from .commitments import commitments_for_date
from .conflicts import ConflictChecker
from .editor import SessionTimeEditor
from .redistribution import redistribute_missed_sessions
from .state import JsonFileEditStore, MemoryEditStore
from .status import check_session_status, collect_missed_sessions, skip_session

__all__ = [
    "commitments_for_date",
    "ConflictChecker",
    "SessionTimeEditor",
    "redistribute_missed_sessions",
    "JsonFileEditStore",
    "MemoryEditStore",
    "check_session_status",
    "collect_missed_sessions",
    "skip_session",
]
