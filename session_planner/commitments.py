from __future__ import annotations

from typing import Iterable, List

from .models import FixedCommitment
from .utils import hours_between, time_to_minutes, weekday_index


def _occurs_on(commitment: FixedCommitment, date_str: str, weekday: int) -> bool:
    if date_str in commitment.deleted_occurrences:
        return False
    if commitment.recurring:
        return weekday in commitment.days_of_week
    return date_str in commitment.specific_dates


def _apply_occurrence_override(commitment: FixedCommitment,
                               date_str: str) -> FixedCommitment:
    override = commitment.modified_occurrences.get(date_str)
    if override is None:
        return commitment
    patch = {
        key: value
        for key, value in override.model_dump().items()
        if value is not None
    }
    if not patch:
        return commitment
    return commitment.model_copy(update=patch)


def commitments_for_date(commitments: Iterable[FixedCommitment],
                         date_str: str) -> List[FixedCommitment]:
    """
    해당 날짜에 실제로 적용되는 고정 일정 목록

    - deleted_occurrences 에 포함된 날짜는 제외
    - 반복 일정은 요일, 단발 일정은 specific_dates 로 판단
    - modified_occurrences 의 날짜별 수정값을 덮어쓴다 (없는 필드는 원본 유지)

    Returns:
        시작 시간 순으로 정렬된 목록 (입력은 변경하지 않음)
    """
    weekday = weekday_index(date_str)
    resolved = [
        _apply_occurrence_override(c, date_str)
        for c in commitments
        if _occurs_on(c, date_str, weekday)
    ]
    resolved.sort(key=lambda c: (time_to_minutes(c.start_time), c.id))
    return resolved


def committed_hours_for_date(commitments: Iterable[FixedCommitment],
                             date_str: str) -> float:
    return sum(
        hours_between(c.start_time, c.end_time)
        for c in commitments_for_date(commitments, date_str))
