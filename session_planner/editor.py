from __future__ import annotations

import uuid
from typing import Iterable, List, Optional

from .conflicts import ConflictChecker
from .models import (
    ConflictResult,
    EditResult,
    FixedCommitment,
    SessionTimeEdit,
    StudyPlan,
    StudySession,
    Task,
    UserSettings,
    session_key,
)
from .state import EditStore, JsonFileEditStore
from .utils import _log_debug, _now_iso, end_time_for, is_valid_date, is_valid_time


class SessionTimeEditor:
    """
    세션 시작 시간 편집기

    편집 내역은 원본 플랜을 바꾸지 않고 (날짜, 태스크, 세션 번호) 키로 덮어쓰는 형태로
    보관한다. 생성 시 저장소에서 한 번 읽고, 변경할 때마다 전체를 다시 저장한다.
    """

    def __init__(self,
                 study_plans: List[StudyPlan],
                 fixed_commitments: List[FixedCommitment],
                 settings: UserSettings,
                 store: Optional[EditStore] = None,
                 tasks: Optional[Iterable[Task]] = None):
        self.study_plans = study_plans
        self.fixed_commitments = fixed_commitments
        self.settings = settings
        self.store = store if store is not None else JsonFileEditStore()
        self.session_time_edits: List[SessionTimeEdit] = self.store.load()
        self.checker = ConflictChecker(study_plans,
                                       fixed_commitments,
                                       settings,
                                       tasks=tasks,
                                       project=self.get_edited_session)

    def check_time_conflict(self,
                            plan_date: str,
                            new_start_time: str,
                            session_duration: float,
                            exclude_session_id: Optional[str],
                            include_suggestions: bool = True) -> ConflictResult:
        return self.checker.check(plan_date,
                                  new_start_time,
                                  session_duration,
                                  exclude_session_id,
                                  include_suggestions=include_suggestions)

    def suggest_times(self, plan_date: str, session_duration: float,
                      exclude_session_id: Optional[str]) -> List[str]:
        return self.checker.suggest_times(plan_date, session_duration,
                                          exclude_session_id)

    def edit_session_time(self,
                          plan_date: str,
                          task_id: str,
                          session_number: int,
                          new_start_time: str,
                          session_duration: float) -> EditResult:
        if not is_valid_date(plan_date):
            return EditResult(success=False, error=f"Invalid date: {plan_date}")
        if not is_valid_time(new_start_time):
            return EditResult(success=False, error=f"Invalid start time: {new_start_time}")
        session_id = session_key(task_id, session_number)
        conflict = self.check_time_conflict(plan_date,
                                            new_start_time,
                                            session_duration,
                                            session_id,
                                            include_suggestions=False)
        if conflict.has_conflict:
            _log_debug(f"[EDITOR] reject {plan_date} {session_id} -> "
                       f"{new_start_time}: {conflict.conflicts_with}")
            return EditResult(success=False, error=conflict.conflicts_with)

        session = self._find_session(plan_date, task_id, session_number)
        if session is None:
            return EditResult(success=False, error="Session not found")

        existing_index = self._find_edit_index(plan_date, task_id, session_number)
        existing = (self.session_time_edits[existing_index]
                    if existing_index is not None else None)
        # original_start_time 은 최초 배정 시간을 유지한다.
        edit = SessionTimeEdit(
            id=existing.id if existing else f"edit-{uuid.uuid4().hex[:12]}",
            plan_date=plan_date,
            task_id=task_id,
            session_number=session_number,
            original_start_time=(existing.original_start_time
                                 if existing else session.start_time),
            new_start_time=new_start_time,
            new_end_time=end_time_for(new_start_time, session_duration),
            edited_at=_now_iso(),
            is_temporary=True,
        )
        if existing_index is not None:
            self.session_time_edits[existing_index] = edit
        else:
            self.session_time_edits.append(edit)

        self._save_edits()
        return EditResult(success=True)

    def get_edit(self, plan_date: str, task_id: str,
                 session_number: int) -> Optional[SessionTimeEdit]:
        index = self._find_edit_index(plan_date, task_id, session_number)
        if index is None:
            return None
        return self.session_time_edits[index].model_copy()

    def has_edit(self, plan_date: str, task_id: str, session_number: int) -> bool:
        return self._find_edit_index(plan_date, task_id, session_number) is not None

    def get_edited_session(self, session: StudySession,
                           plan_date: str) -> StudySession:
        index = self._find_edit_index(plan_date, session.task_id,
                                      session.session_number)
        if index is None:
            return session.model_copy()
        edit = self.session_time_edits[index]
        return session.model_copy(update={
            "start_time": edit.new_start_time,
            "end_time": edit.new_end_time,
        })

    def apply_edits_to_plans(self, plans: List[StudyPlan]) -> List[StudyPlan]:
        return [
            plan.model_copy(update={
                "planned_tasks": [
                    self.get_edited_session(s, plan.date) for s in plan.planned_tasks
                ]
            }) for plan in plans
        ]

    def remove_edit(self, plan_date: str, task_id: str, session_number: int) -> bool:
        index = self._find_edit_index(plan_date, task_id, session_number)
        if index is None:
            return False
        del self.session_time_edits[index]
        self._save_edits()
        return True

    def clear_temporary_edits(self) -> int:
        """플랜 재생성 시 호출. 삭제된 편집 수를 반환"""
        before = len(self.session_time_edits)
        self.session_time_edits = [
            e for e in self.session_time_edits if not e.is_temporary
        ]
        self._save_edits()
        return before - len(self.session_time_edits)

    def get_all_edits(self) -> List[SessionTimeEdit]:
        return [e.model_copy() for e in self.session_time_edits]

    def _find_edit_index(self, plan_date: str, task_id: str,
                         session_number: int) -> Optional[int]:
        for index, edit in enumerate(self.session_time_edits):
            if (edit.plan_date == plan_date and edit.task_id == task_id and
                    edit.session_number == session_number):
                return index
        return None

    def _find_session(self, plan_date: str, task_id: str,
                      session_number: int) -> Optional[StudySession]:
        plan = self.checker.plan_for(plan_date)
        if plan is None:
            return None
        for session in plan.planned_tasks:
            if session.task_id == task_id and session.session_number == session_number:
                return session
        return None

    def _save_edits(self) -> None:
        self.store.save(self.session_time_edits)
