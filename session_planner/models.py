from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from .config import DEFAULT_REDISTRIBUTION_DAYS
from .utils import is_valid_date, is_valid_time

SessionStatus = Literal["scheduled", "in_progress", "completed", "missed",
                        "overdue", "rescheduled", "skipped"]
CommitmentType = Literal["class", "work", "appointment", "other", "buffer"]
RescheduleReason = Literal["missed", "manual", "conflict", "redistribution"]
SkipReason = Literal["user_choice", "conflict", "overload"]
ConflictKind = Literal["study_window", "work_day", "session_overlap",
                       "commitment_overlap"]


def _check_hhmm(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    raw = value.strip()
    if not is_valid_time(raw):
        raise ValueError(f"expected HH:MM, got {value!r}")
    return raw


def _check_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    raw = value.strip()
    if not is_valid_date(raw):
        raise ValueError(f"expected a real YYYY-MM-DD date, got {value!r}")
    return raw


# -------------------------
# 태스크
# -------------------------
class SchedulingPreferences(BaseModel):
    target_frequency: Literal["daily", "weekly", "3x-week", "flexible"] = "flexible"
    preferred_time_slots: List[Literal["morning", "afternoon", "evening"]] = []
    min_work_block: Optional[int] = None  # 분
    max_session_length: Optional[float] = None  # 시간
    is_one_time_task: bool = False


class Task(BaseModel):
    id: str
    title: str
    estimated_hours: float
    deadline: Optional[str] = None
    importance: bool = False
    status: Literal["pending", "in_progress", "completed"] = "pending"
    deadline_type: Literal["hard", "soft", "none"] = "hard"
    preferences: SchedulingPreferences = Field(default_factory=SchedulingPreferences)

    @field_validator("deadline")
    @classmethod
    def validate_deadline(cls, value: Optional[str]) -> Optional[str]:
        return _check_date(value)


# -------------------------
# 세션 / 플랜
# -------------------------
class SessionSlot(BaseModel):
    date: str
    start_time: str
    end_time: str


class RescheduleEntry(BaseModel):
    from_slot: SessionSlot
    to_slot: SessionSlot
    timestamp: str
    reason: RescheduleReason


class SchedulingMetadata(BaseModel):
    original_slot: Optional[SessionSlot] = None
    reschedule_history: List[RescheduleEntry] = []
    redistribution_round: Optional[int] = None
    priority: float = 0.0


class SkipMetadata(BaseModel):
    skipped_at: str
    reason: Optional[SkipReason] = None
    partial_hours: Optional[float] = None  # 부분 건너뛰기한 시간


class StudySession(BaseModel):
    task_id: str
    session_number: int = Field(default=1, ge=1)
    start_time: str
    end_time: str
    allocated_hours: float
    status: SessionStatus = "scheduled"
    done: bool = False
    original_time: Optional[str] = None
    original_date: Optional[str] = None
    rescheduled_at: Optional[str] = None
    is_manual_override: bool = False
    scheduling_metadata: Optional[SchedulingMetadata] = None
    skip_metadata: Optional[SkipMetadata] = None

    @field_validator("start_time", "end_time", "original_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _check_hhmm(value)

    @field_validator("original_date")
    @classmethod
    def validate_original_date(cls, value: Optional[str]) -> Optional[str]:
        return _check_date(value)

    @property
    def key(self) -> str:
        return session_key(self.task_id, self.session_number)


class StudyPlan(BaseModel):
    id: str
    date: str
    planned_tasks: List[StudySession] = []
    total_study_hours: float = 0.0
    available_hours: float = 0.0
    is_overloaded: bool = False

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_date(value)

    def recalculate_totals(self) -> None:
        self.total_study_hours = round(sum(
            s.allocated_hours for s in self.planned_tasks
            if s.status not in ("skipped", "rescheduled")), 4)
        self.is_overloaded = bool(
            self.available_hours and self.total_study_hours > self.available_hours)


def session_key(task_id: str, session_number: int) -> str:
    return f"{task_id}#{session_number}"


# -------------------------
# 고정 일정
# -------------------------
class OccurrenceOverride(BaseModel):
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    title: Optional[str] = None
    type: Optional[CommitmentType] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _check_hhmm(value)


class FixedCommitment(BaseModel):
    id: str
    title: str
    type: CommitmentType = "other"
    start_time: str
    end_time: str
    recurring: bool = True
    days_of_week: List[int] = []  # 0 = 일요일
    specific_dates: List[str] = []
    deleted_occurrences: List[str] = []
    modified_occurrences: Dict[str, OccurrenceOverride] = {}
    location: Optional[str] = None
    description: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_times(cls, value: Optional[str]) -> Optional[str]:
        return _check_hhmm(value)

    @field_validator("specific_dates", "deleted_occurrences")
    @classmethod
    def validate_dates(cls, value: List[str]) -> List[str]:
        return [_check_date(d) for d in value]

    @field_validator("modified_occurrences")
    @classmethod
    def validate_override_dates(
            cls, value: Dict[str, OccurrenceOverride]) -> Dict[str, OccurrenceOverride]:
        return {_check_date(d): override for d, override in value.items()}


# -------------------------
# 편집 기록 / 설정
# -------------------------
class SessionTimeEdit(BaseModel):
    id: str
    plan_date: str
    task_id: str
    session_number: int
    original_start_time: str
    new_start_time: str
    new_end_time: str
    edited_at: str
    is_temporary: bool = True

    @property
    def key(self) -> str:
        return session_key(self.task_id, self.session_number)


class UserSettings(BaseModel):
    daily_available_hours: float = 6.0
    work_days: List[int] = [1, 2, 3, 4, 5]
    study_window_start_hour: int = Field(default=8, ge=0, le=24)
    study_window_end_hour: int = Field(default=20, ge=0, le=24)
    min_session_length: int = 15  # 분
    weekend_study_hours: float = 4.0
    buffer_days: int = 0


# -------------------------
# 결과 타입
# -------------------------
class ConflictResult(BaseModel):
    has_conflict: bool
    conflicts_with: Optional[str] = None
    kind: Optional[ConflictKind] = None
    suggested_times: List[str] = []


class EditResult(BaseModel):
    success: bool
    error: Optional[str] = None


class RedistributionOptions(BaseModel):
    prioritize_missed_sessions: bool = True
    respect_daily_limits: bool = True
    allow_weekend_overflow: bool = False
    max_redistribution_days: int = Field(default=DEFAULT_REDISTRIBUTION_DAYS, ge=1)


class FailedSession(BaseModel):
    session: StudySession
    plan_date: str
    reason: str


class RedistributionResult(BaseModel):
    redistributed_sessions: List[StudySession] = []
    failed_sessions: List[FailedSession] = []
    conflicts_resolved: int = 0
    total_sessions_moved: int = 0


# -------------------------
# API 요청 payload
# -------------------------
class PlanSnapshot(BaseModel):
    study_plans: List[StudyPlan] = []
    fixed_commitments: List[FixedCommitment] = []
    settings: UserSettings = Field(default_factory=UserSettings)
    tasks: List[Task] = []


class ConflictCheckRequest(PlanSnapshot):
    plan_date: str
    new_start_time: str
    session_duration: float = Field(gt=0)
    exclude_session_id: Optional[str] = None

    @field_validator("plan_date")
    @classmethod
    def validate_plan_date(cls, value: str) -> str:
        return _check_date(value)

    @field_validator("new_start_time")
    @classmethod
    def validate_start(cls, value: str) -> str:
        return _check_hhmm(value)


class SuggestionRequest(PlanSnapshot):
    plan_date: str
    session_duration: float = Field(gt=0)
    exclude_session_id: Optional[str] = None

    @field_validator("plan_date")
    @classmethod
    def validate_plan_date(cls, value: str) -> str:
        return _check_date(value)


class SessionEditRequest(PlanSnapshot):
    plan_date: str
    task_id: str
    session_number: int = Field(ge=1)
    new_start_time: str
    session_duration: float = Field(gt=0)

    @field_validator("plan_date")
    @classmethod
    def validate_plan_date(cls, value: str) -> str:
        return _check_date(value)

    @field_validator("new_start_time")
    @classmethod
    def validate_start(cls, value: str) -> str:
        return _check_hhmm(value)


class ApplyEditsRequest(BaseModel):
    study_plans: List[StudyPlan] = []


class RedistributeRequest(PlanSnapshot):
    options: RedistributionOptions = Field(default_factory=RedistributionOptions)
    now: Optional[datetime] = None


class CommitmentsForDateRequest(BaseModel):
    date: str
    fixed_commitments: List[FixedCommitment] = []

    @field_validator("date")
    @classmethod
    def validate_date(cls, value: str) -> str:
        return _check_date(value)


class SkipSessionRequest(BaseModel):
    study_plans: List[StudyPlan] = []
    plan_date: str
    task_id: str
    session_number: int = Field(ge=1)
    partial_hours: Optional[float] = Field(default=None, gt=0)
    reason: SkipReason = "user_choice"
    now: Optional[datetime] = None

    @field_validator("plan_date")
    @classmethod
    def validate_plan_date(cls, value: str) -> str:
        return _check_date(value)
