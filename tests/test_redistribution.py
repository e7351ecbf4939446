import unittest
from datetime import datetime

from session_planner.models import RedistributionOptions, Task
from session_planner.redistribution import redistribute_missed_sessions, session_priority

from tests.factories import default_settings, make_commitment, make_plan, make_session

MONDAY_MORNING = datetime(2024, 1, 15, 7, 0)
FRIDAY = "2024-01-12"


def _plan_for(plans, date):
    return next(p for p in plans if p.date == date)


class TestRedistribution(unittest.TestCase):
    def setUp(self):
        self.settings = default_settings()
        self.tasks = [Task(id="T1", title="Calculus", estimated_hours=4)]

    def _run(self, plans, commitments=(), tasks=None, now=MONDAY_MORNING, **options):
        return redistribute_missed_sessions(plans,
                                            self.settings,
                                            list(commitments),
                                            tasks if tasks is not None else self.tasks,
                                            RedistributionOptions(**options),
                                            now=now)

    def test_missed_session_moves_to_same_time_today(self):
        missed = make_session("T1", "09:00", status="missed")
        plans = [make_plan(FRIDAY, [missed])]
        result = self._run(plans)

        self.assertEqual(result.total_sessions_moved, 1)
        self.assertEqual(result.conflicts_resolved, 0)
        self.assertEqual(result.failed_sessions, [])
        self.assertEqual(missed.status, "rescheduled")

        target = _plan_for(plans, "2024-01-15")
        moved = target.planned_tasks[0]
        self.assertEqual((moved.start_time, moved.end_time), ("09:00", "10:00"))
        self.assertEqual(moved.status, "scheduled")
        self.assertEqual((moved.original_time, moved.original_date), ("09:00", FRIDAY))
        history = moved.scheduling_metadata.reschedule_history
        self.assertEqual(len(history), 1)
        self.assertEqual(history[0].reason, "redistribution")
        self.assertEqual(history[0].from_slot.date, FRIDAY)
        self.assertEqual(history[0].to_slot.date, "2024-01-15")
        self.assertEqual(target.total_study_hours, 1)
        self.assertEqual(_plan_for(plans, FRIDAY).total_study_hours, 0)

    def test_past_scheduled_session_counts_as_missed(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00")])]
        self.assertEqual(self._run(plans).total_sessions_moved, 1)

    def test_conflicting_first_choice_uses_fallback(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        lecture = make_commitment("Lecture", "09:00", "10:00", days_of_week=[1])
        result = self._run(plans, [lecture])
        self.assertEqual(result.conflicts_resolved, 1)
        moved = result.redistributed_sessions[0]
        self.assertEqual(moved.start_time, "08:00")
        self.assertEqual(_plan_for(plans, "2024-01-15").planned_tasks[0].start_time, "08:00")

    def test_today_respects_current_time(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        result = self._run(plans, now=datetime(2024, 1, 15, 10, 40))
        self.assertEqual(result.redistributed_sessions[0].start_time, "11:00")
        # 이미 지난 시간은 충돌이 아니다
        self.assertEqual(result.conflicts_resolved, 0)

    def test_no_slot_within_window_fails_and_keeps_missed(self):
        missed = make_session("T1", "09:00", status="missed")
        plans = [make_plan(FRIDAY, [missed])]
        blocker = make_commitment("Busy", "08:00", "20:00", days_of_week=list(range(7)))
        result = self._run(plans, [blocker], max_redistribution_days=14)

        self.assertEqual(result.total_sessions_moved, 0)
        self.assertEqual(len(result.failed_sessions), 1)
        failure = result.failed_sessions[0]
        self.assertEqual(failure.reason, "No available slot within 14 days")
        self.assertEqual(failure.plan_date, FRIDAY)
        self.assertEqual(failure.session.status, "missed")
        self.assertEqual(missed.status, "missed")
        self.assertEqual(len(plans), 1)

    def test_fails_without_daily_limit_check_too(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        blocker = make_commitment("Busy", "08:00", "20:00", days_of_week=list(range(7)))
        result = self._run(plans, [blocker], respect_daily_limits=False,
                           max_redistribution_days=3)
        self.assertEqual(result.failed_sessions[0].reason, "No available slot within 3 days")

    def test_weekend_is_skipped_without_overflow(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        result = self._run(plans, now=datetime(2024, 1, 13, 7, 0))
        self.assertEqual(result.total_sessions_moved, 1)
        self.assertEqual([p.date for p in plans], [FRIDAY, "2024-01-15"])

    def test_weekend_overflow_uses_saturday(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        result = self._run(plans, now=datetime(2024, 1, 13, 7, 0), allow_weekend_overflow=True)
        self.assertEqual(result.total_sessions_moved, 1)
        self.assertEqual(_plan_for(plans, "2024-01-13").planned_tasks[0].start_time, "09:00")

    def test_weekend_overflow_respects_weekend_limit(self):
        self.settings = default_settings(daily_available_hours=5, weekend_study_hours=3)
        saturday = make_plan("2024-01-13", [make_session("T2", "12:00", 2.5)])
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")]), saturday]
        result = self._run(plans, now=datetime(2024, 1, 13, 7, 0), allow_weekend_overflow=True)

        self.assertEqual(result.total_sessions_moved, 1)
        self.assertEqual(len(saturday.planned_tasks), 1)
        sunday = _plan_for(plans, "2024-01-14")
        self.assertEqual(sunday.planned_tasks[0].start_time, "09:00")
        self.assertEqual(sunday.available_hours, 3)
        self.assertEqual([p.date for p in plans], [FRIDAY, "2024-01-13", "2024-01-14"])

    def test_full_weekend_overflows_to_monday(self):
        self.settings = default_settings(daily_available_hours=5, weekend_study_hours=3)
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")]),
                 make_plan("2024-01-13", [make_session("T2", "12:00", 2.5)]),
                 make_plan("2024-01-14", [make_session("T3", "12:00", 2.5)])]
        result = self._run(plans, now=datetime(2024, 1, 13, 7, 0), allow_weekend_overflow=True)

        self.assertEqual(result.total_sessions_moved, 1)
        monday = _plan_for(plans, "2024-01-15")
        self.assertEqual(monday.planned_tasks[0].start_time, "09:00")
        self.assertEqual(monday.available_hours, 5)
        self.assertFalse(monday.is_overloaded)

    def test_daily_limit_pushes_to_next_day(self):
        full_day = make_plan("2024-01-15", [make_session("T2", "12:00", 6)])
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")]), full_day]
        result = self._run(plans)
        self.assertEqual(result.total_sessions_moved, 1)
        self.assertEqual(len(full_day.planned_tasks), 1)
        self.assertEqual(_plan_for(plans, "2024-01-16").planned_tasks[0].start_time, "09:00")

    def test_daily_limit_counts_commitments(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")])]
        work = make_commitment("Work", "12:00", "17:30", days_of_week=[1])
        result = self._run(plans, [work])
        self.assertEqual(result.redistributed_sessions[0].start_time, "09:00")
        self.assertIsNotNone(_plan_for(plans, "2024-01-16"))

    def test_ignoring_daily_limit_fits_around_existing_sessions(self):
        full_day = make_plan("2024-01-15", [make_session("T2", "08:00", 6)])
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")]), full_day]
        result = self._run(plans, respect_daily_limits=False)
        self.assertEqual(result.conflicts_resolved, 1)
        self.assertEqual([s.start_time for s in full_day.planned_tasks], ["08:00", "14:00"])
        self.assertTrue(full_day.total_study_hours == 7 and full_day.is_overloaded)

    def test_important_sessions_are_placed_first(self):
        tasks = [Task(id="A", title="Reading", estimated_hours=2),
                 Task(id="B", title="Exam prep", estimated_hours=2, importance=True,
                      deadline="2024-01-18")]
        plans = [make_plan(FRIDAY, [make_session("A", "09:00", status="missed"),
                                    make_session("B", "09:00", status="missed")])]
        result = self._run(plans, tasks=tasks)
        self.assertEqual([s.task_id for s in result.redistributed_sessions], ["B", "A"])
        self.assertEqual([s.start_time for s in result.redistributed_sessions], ["09:00", "08:00"])
        self.assertEqual(result.conflicts_resolved, 1)
        self.assertGreater(result.redistributed_sessions[0].scheduling_metadata.priority, 0)

    def test_chronological_order_without_prioritising(self):
        tasks = [Task(id="A", title="Reading", estimated_hours=2),
                 Task(id="B", title="Exam prep", estimated_hours=2, importance=True)]
        plans = [make_plan("2024-01-11", [make_session("A", "09:00", status="missed")]),
                 make_plan(FRIDAY, [make_session("B", "09:00", status="missed")])]
        result = self._run(plans, tasks=tasks, prioritize_missed_sessions=False)
        self.assertEqual([s.task_id for s in result.redistributed_sessions], ["A", "B"])

    def test_session_longer_than_window_fails(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "08:00", 13, status="missed")])]
        result = self._run(plans, respect_daily_limits=False)
        self.assertEqual(result.failed_sessions[0].reason,
                         "Session is longer than the study window")

    def test_skipped_and_completed_sessions_stay_put(self):
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="skipped"),
                                    make_session("T2", "11:00", done=True)])]
        result = self._run(plans)
        self.assertEqual(result.total_sessions_moved, 0)
        self.assertEqual(result.failed_sessions, [])
        self.assertEqual(len(plans), 1)

    def test_projection_is_respected(self):
        existing = make_session("T2", "14:00")
        plans = [make_plan(FRIDAY, [make_session("T1", "09:00", status="missed")]),
                 make_plan("2024-01-15", [existing])]

        def moved(session, plan_date):
            if session.task_id == "T2":
                return session.model_copy(update={"start_time": "09:00", "end_time": "10:00"})
            return session

        result = redistribute_missed_sessions(plans, self.settings, [], self.tasks,
                                              RedistributionOptions(), now=MONDAY_MORNING,
                                              project=moved)
        self.assertEqual(result.conflicts_resolved, 1)
        self.assertEqual(result.redistributed_sessions[0].start_time, "08:00")


class TestSessionPriority(unittest.TestCase):
    def test_importance_and_deadline(self):
        tasks = {
            "plain": Task(id="plain", title="p", estimated_hours=1),
            "soon": Task(id="soon", title="s", estimated_hours=1, deadline="2024-01-16"),
            "vital": Task(id="vital", title="v", estimated_hours=1, importance=True),
        }
        today = "2024-01-15"
        plain = session_priority(make_session("plain", "09:00"), tasks, today)
        soon = session_priority(make_session("soon", "09:00"), tasks, today)
        vital = session_priority(make_session("vital", "09:00"), tasks, today)
        self.assertEqual(plain, 0)
        self.assertGreater(soon, plain)
        self.assertGreater(vital, soon)
        self.assertEqual(session_priority(make_session("ghost", "09:00"), tasks, today), 0)


if __name__ == '__main__':
    unittest.main()
