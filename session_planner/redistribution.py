from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from .commitments import committed_hours_for_date
from .config import WEEKEND_DAYS
from .conflicts import ConflictChecker, SessionProjector
from .models import (
    FailedSession,
    FixedCommitment,
    RedistributionOptions,
    RedistributionResult,
    RescheduleEntry,
    SchedulingMetadata,
    SessionSlot,
    StudyPlan,
    StudySession,
    Task,
    UserSettings,
)
from .status import collect_missed_sessions
from .utils import (
    _log_debug,
    add_days,
    duration_minutes,
    end_time_for,
    format_date,
    minutes_of_day,
    parse_date,
    time_to_minutes,
    weekday_index,
)

_INACTIVE_STATUSES = ("skipped", "rescheduled")


def session_priority(session: StudySession,
                     tasks_by_id: Dict[str, Task],
                     today: str) -> float:
    """중요도 + 마감 임박도. 값이 클수록 먼저 재배치"""
    task = tasks_by_id.get(session.task_id)
    if task is None:
        return 0.0
    score = 10.0 if task.importance else 0.0
    if task.deadline:
        days_left = max(0, (parse_date(task.deadline) - parse_date(today)).days)
        score += max(0.0, 30.0 - days_left) / 3.0
    return round(score, 4)


def _committed_hours(plan: Optional[StudyPlan],
                     commitments: List[FixedCommitment],
                     day: str) -> float:
    session_hours = 0.0
    if plan is not None:
        session_hours = sum(s.allocated_hours for s in plan.planned_tasks
                            if s.status not in _INACTIVE_STATUSES)
    return session_hours + committed_hours_for_date(commitments, day)


def _has_active_copy(plan: Optional[StudyPlan], session: StudySession) -> bool:
    if plan is None:
        return False
    return any(
        s.key == session.key and s.status not in _INACTIVE_STATUSES
        for s in plan.planned_tasks)


def _find_slot(checker: ConflictChecker,
               session: StudySession,
               commitments: List[FixedCommitment],
               settings: UserSettings,
               options: RedistributionOptions,
               today: str,
               now_minutes: int) -> Optional[Tuple[str, str, bool]]:
    """(날짜, 시작 시간, 원래 시간이 충돌해 대체 슬롯을 썼는지) 또는 None"""
    hours = session.allocated_hours
    for offset in range(options.max_redistribution_days):
        day = add_days(today, offset)
        weekday = weekday_index(day)
        overflow = False
        if weekday not in settings.work_days:
            if not (options.allow_weekend_overflow and weekday in WEEKEND_DAYS):
                continue
            overflow = True

        target_plan = checker.plan_for(day)
        if _has_active_copy(target_plan, session):
            continue
        if options.respect_daily_limits:
            limit = settings.weekend_study_hours if overflow else settings.daily_available_hours
            if _committed_hours(target_plan, commitments, day) + hours > limit + 1e-9:
                continue

        not_before = now_minutes if day == today else None
        first_choice = session.start_time
        first_conflicted = False
        if not_before is None or time_to_minutes(first_choice) >= not_before:
            first = checker.check(day,
                                  first_choice,
                                  hours,
                                  session.key,
                                  include_suggestions=False,
                                  enforce_work_days=not overflow)
            if not first.has_conflict:
                return day, first_choice, False
            first_conflicted = True

        fallback = checker.suggest_times(day,
                                         hours,
                                         session.key,
                                         not_before=not_before,
                                         enforce_work_days=not overflow,
                                         limit=1)
        if fallback:
            return day, fallback[0], first_conflicted
    return None


def _place_session(plans: List[StudyPlan],
                   checker: ConflictChecker,
                   source_plan: StudyPlan,
                   session: StudySession,
                   day: str,
                   start_time: str,
                   priority: float,
                   settings: UserSettings,
                   stamp: str) -> StudySession:
    end_time = end_time_for(start_time, session.allocated_hours)
    metadata = (session.scheduling_metadata.model_copy(deep=True)
                if session.scheduling_metadata else SchedulingMetadata())
    from_slot = SessionSlot(date=source_plan.date,
                            start_time=session.start_time,
                            end_time=session.end_time)
    if metadata.original_slot is None:
        metadata.original_slot = from_slot
    metadata.reschedule_history.append(
        RescheduleEntry(from_slot=from_slot,
                        to_slot=SessionSlot(date=day,
                                            start_time=start_time,
                                            end_time=end_time),
                        timestamp=stamp,
                        reason="redistribution"))
    metadata.redistribution_round = (metadata.redistribution_round or 0) + 1
    metadata.priority = priority

    moved = session.model_copy(deep=True,
                               update={
                                   "start_time": start_time,
                                   "end_time": end_time,
                                   "status": "scheduled",
                                   "done": False,
                                   "original_time": session.original_time or session.start_time,
                                   "original_date": session.original_date or source_plan.date,
                                   "rescheduled_at": stamp,
                                   "scheduling_metadata": metadata,
                               })

    session.status = "rescheduled"
    session.rescheduled_at = stamp

    target_plan = checker.plan_for(day)
    if target_plan is None:
        weekday = weekday_index(day)
        available = (settings.daily_available_hours
                     if weekday in settings.work_days else settings.weekend_study_hours)
        target_plan = StudyPlan(id=f"plan-{day}", date=day, available_hours=available)
        plans.append(target_plan)
        plans.sort(key=lambda p: p.date)
    target_plan.planned_tasks.append(moved)
    target_plan.planned_tasks.sort(key=lambda s: time_to_minutes(s.start_time))
    target_plan.recalculate_totals()
    source_plan.recalculate_totals()
    return moved


def redistribute_missed_sessions(
        plans: List[StudyPlan],
        settings: UserSettings,
        commitments: List[FixedCommitment],
        tasks: Iterable[Task],
        options: Optional[RedistributionOptions] = None,
        now: Optional[datetime] = None,
        project: Optional[SessionProjector] = None) -> RedistributionResult:
    """
    놓친 세션을 앞으로의 빈 시간대로 옮긴다.

    plans 는 제자리에서 수정된다 (필요하면 새 날짜의 플랜이 추가됨).
    옮긴 세션의 이전 자리는 status="rescheduled" 로 남고, 실패한 세션은
    missed 상태 그대로 failed_sessions 에 담긴다.
    """
    options = options or RedistributionOptions()
    now = now or datetime.now()
    today = format_date(now.date())
    now_minutes = minutes_of_day(now)
    stamp = now.isoformat(timespec="seconds")
    task_list = list(tasks)
    tasks_by_id = {t.id: t for t in task_list}
    checker = ConflictChecker(plans, commitments, settings, tasks=task_list, project=project)
    window_minutes = (settings.study_window_end_hour - settings.study_window_start_hour) * 60

    candidates = [(plan, session, session_priority(session, tasks_by_id, today))
                  for plan, session in collect_missed_sessions(plans, now)]
    if options.prioritize_missed_sessions:
        candidates.sort(key=lambda item: (-item[2], item[0].date, item[1].session_number))
    else:
        candidates.sort(key=lambda item: (item[0].date, time_to_minutes(item[1].start_time)))

    result = RedistributionResult()
    for plan, session, priority in candidates:
        if session.allocated_hours <= 0:
            continue
        if duration_minutes(session.allocated_hours) > window_minutes:
            reason = "Session is longer than the study window"
            result.failed_sessions.append(
                FailedSession(session=session.model_copy(deep=True),
                              plan_date=plan.date,
                              reason=reason))
            _log_debug(f"[REDISTRIBUTE] {session.key} failed: {reason}")
            continue

        slot = _find_slot(checker, session, commitments, settings, options, today,
                          now_minutes)
        if slot is None:
            reason = f"No available slot within {options.max_redistribution_days} days"
            result.failed_sessions.append(
                FailedSession(session=session.model_copy(deep=True),
                              plan_date=plan.date,
                              reason=reason))
            _log_debug(f"[REDISTRIBUTE] {session.key} failed: {reason}")
            continue

        day, start_time, resolved_conflict = slot
        moved = _place_session(plans, checker, plan, session, day, start_time, priority,
                               settings, stamp)
        if resolved_conflict:
            result.conflicts_resolved += 1
        result.redistributed_sessions.append(moved)
        result.total_sessions_moved += 1
        _log_debug(f"[REDISTRIBUTE] {session.key} {plan.date} -> {day} {start_time}")

    return result
