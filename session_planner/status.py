from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from .models import SkipMetadata, SkipReason, StudyPlan, StudySession
from .utils import _log_debug, end_time_for, format_date, minutes_of_day, time_to_minutes

_STICKY_STATUSES = {"skipped", "rescheduled", "missed", "completed"}


def check_session_status(session: StudySession,
                         plan_date: str,
                         now: Optional[datetime] = None) -> str:
    now = now or datetime.now()
    if session.done:
        return "completed"
    if session.status in _STICKY_STATUSES:
        return session.status
    today = format_date(now.date())
    if plan_date < today:
        return "missed"
    if plan_date == today and time_to_minutes(session.end_time) <= minutes_of_day(now):
        return "overdue"
    return session.status


def collect_missed_sessions(
        plans: Iterable[StudyPlan],
        now: Optional[datetime] = None) -> List[Tuple[StudyPlan, StudySession]]:
    """지난 날짜의 놓친 세션 목록. 이미 과거로 재배치된 세션은 제외"""
    now = now or datetime.now()
    today = format_date(now.date())
    missed: List[Tuple[StudyPlan, StudySession]] = []
    for plan in plans:
        for session in plan.planned_tasks:
            if check_session_status(session, plan.date, now) != "missed":
                continue
            if session.original_time and session.original_date and plan.date < today:
                continue
            missed.append((plan, session))
    return missed


def skip_session(plans: Iterable[StudyPlan],
                 plan_date: str,
                 task_id: str,
                 session_number: int,
                 partial_hours: Optional[float] = None,
                 reason: SkipReason = "user_choice",
                 now: Optional[datetime] = None) -> bool:
    """
    세션 건너뛰기.

    partial_hours 가 없거나 배정 시간 이상이면 전체 건너뛰기: status="skipped" 로 바꾸고
    재배치 대상에서 영구히 빠진다. 그보다 작으면 부분 건너뛰기: 배정 시간과 종료 시간만
    줄이고 status 는 그대로 두어 남은 시간이 재배치될 수 있게 한다.
    세션을 찾지 못하면 False.
    """
    if partial_hours is not None and partial_hours <= 0:
        raise ValueError("partial_hours must be positive")
    now = now or datetime.now()
    for plan in plans:
        if plan.date != plan_date:
            continue
        for session in plan.planned_tasks:
            if session.task_id != task_id or session.session_number != session_number:
                continue
            stamp = now.isoformat(timespec="seconds")
            if partial_hours is None or partial_hours >= session.allocated_hours:
                session.status = "skipped"
                session.skip_metadata = SkipMetadata(skipped_at=stamp, reason=reason)
                _log_debug(f"[SKIP] {plan_date} {session.key} skipped")
            else:
                remaining = round(session.allocated_hours - partial_hours, 4)
                session.allocated_hours = remaining
                session.end_time = end_time_for(session.start_time, remaining)
                session.skip_metadata = SkipMetadata(skipped_at=stamp,
                                                     reason=reason,
                                                     partial_hours=partial_hours)
                _log_debug(f"[SKIP] {plan_date} {session.key} partial "
                           f"{partial_hours}h, {remaining}h left")
            plan.recalculate_totals()
            return True
    return False
