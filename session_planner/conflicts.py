from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Optional

from .commitments import commitments_for_date
from .config import MAX_SUGGESTIONS, SUGGESTION_STEP_MINUTES
from .models import (
    ConflictResult,
    FixedCommitment,
    StudyPlan,
    StudySession,
    Task,
    UserSettings,
)
from .utils import duration_minutes, minutes_to_time, time_to_minutes, weekday_index

SessionProjector = Callable[[StudySession, str], StudySession]


def _identity(session: StudySession, plan_date: str) -> StudySession:
    return session


def _overlaps(start: int, end: int, other_start: int, other_end: int) -> bool:
    # 반열린 구간 [start, end)
    return start < other_end and end > other_start


class ConflictChecker:
    """
    세션 시작 시간 변경 가능 여부 판단 + 대안 시간 제안

    검사 순서 (처음 실패한 항목만 보고):
        1. 학습 가능 시간대 (study window)
        2. 학습 요일 (work day)
        3. 같은 날 다른 세션과 겹침 (편집 내역 반영)
        4. 고정 일정과 겹침
    """

    def __init__(self,
                 study_plans: List[StudyPlan],
                 fixed_commitments: List[FixedCommitment],
                 settings: UserSettings,
                 tasks: Optional[Iterable[Task]] = None,
                 project: Optional[SessionProjector] = None):
        self.study_plans = study_plans
        self.fixed_commitments = fixed_commitments
        self.settings = settings
        self.project = project or _identity
        self._task_titles: Dict[str, str] = {t.id: t.title for t in tasks or []}

    def plan_for(self, plan_date: str) -> Optional[StudyPlan]:
        for plan in self.study_plans:
            if plan.date == plan_date:
                return plan
        return None

    def is_work_day(self, plan_date: str) -> bool:
        return weekday_index(plan_date) in self.settings.work_days

    def _window_bounds(self) -> tuple[int, int]:
        return (self.settings.study_window_start_hour * 60,
                self.settings.study_window_end_hour * 60)

    def _session_label(self, session: StudySession) -> str:
        return self._task_titles.get(session.task_id) or session.task_id

    def check(self,
              plan_date: str,
              new_start_time: str,
              session_duration: float,
              exclude_session_id: Optional[str],
              include_suggestions: bool = True,
              enforce_work_days: bool = True) -> ConflictResult:
        start_minutes = time_to_minutes(new_start_time)
        end_minutes = start_minutes + duration_minutes(session_duration)

        def _conflict(kind: str, message: str) -> ConflictResult:
            suggestions: List[str] = []
            if include_suggestions:
                suggestions = self.suggest_times(plan_date,
                                                 session_duration,
                                                 exclude_session_id,
                                                 enforce_work_days=enforce_work_days)
            return ConflictResult(has_conflict=True,
                                  conflicts_with=message,
                                  kind=kind,
                                  suggested_times=suggestions)

        window_start, window_end = self._window_bounds()
        if start_minutes < window_start or end_minutes > window_end:
            return _conflict(
                "study_window",
                f"Outside study window ({self.settings.study_window_start_hour}:00 - "
                f"{self.settings.study_window_end_hour}:00)")

        if enforce_work_days and not self.is_work_day(plan_date):
            return _conflict("work_day", "Not a work day")

        plan = self.plan_for(plan_date)
        if plan is not None:
            for session in plan.planned_tasks:
                if session.key == exclude_session_id:
                    continue
                if session.status == "skipped" or session.done:
                    continue
                edited = self.project(session, plan_date)
                other_start = time_to_minutes(edited.start_time)
                other_end = time_to_minutes(edited.end_time)
                if _overlaps(start_minutes, end_minutes, other_start, other_end):
                    return _conflict(
                        "session_overlap",
                        f"Overlaps with {self._session_label(edited)} session "
                        f"({edited.start_time} - {edited.end_time})")

        for commitment in commitments_for_date(self.fixed_commitments, plan_date):
            commitment_start = time_to_minutes(commitment.start_time)
            commitment_end = time_to_minutes(commitment.end_time)
            if _overlaps(start_minutes, end_minutes, commitment_start, commitment_end):
                return _conflict(
                    "commitment_overlap",
                    f"Overlaps with {commitment.title} "
                    f"({commitment.start_time} - {commitment.end_time})")

        return ConflictResult(has_conflict=False)

    def suggest_times(self,
                      plan_date: str,
                      session_duration: float,
                      exclude_session_id: Optional[str],
                      not_before: Optional[int] = None,
                      enforce_work_days: bool = True,
                      limit: int = MAX_SUGGESTIONS) -> List[str]:
        """study window 를 30분 단위로 훑어 충돌 없는 시작 시간을 최대 limit 개 반환"""
        if enforce_work_days and not self.is_work_day(plan_date):
            return []
        window_start, window_end = self._window_bounds()
        last_start = window_end - duration_minutes(session_duration)
        suggestions: List[str] = []
        for minutes in range(window_start, last_start + 1, SUGGESTION_STEP_MINUTES):
            if not_before is not None and minutes < not_before:
                continue
            candidate = minutes_to_time(minutes)
            result = self.check(plan_date,
                                candidate,
                                session_duration,
                                exclude_session_id,
                                include_suggestions=False,
                                enforce_work_days=enforce_work_days)
            if not result.has_conflict:
                suggestions.append(candidate)
                if len(suggestions) >= limit:
                    break
        return suggestions
