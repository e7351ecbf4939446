from __future__ import annotations

import logging
from threading import Lock
from typing import Any, Dict, List

from fastapi import APIRouter, HTTPException

from .commitments import commitments_for_date
from .editor import SessionTimeEditor
from .models import (
    ApplyEditsRequest,
    CommitmentsForDateRequest,
    ConflictCheckRequest,
    ConflictResult,
    EditResult,
    FixedCommitment,
    PlanSnapshot,
    RedistributeRequest,
    SessionEditRequest,
    SessionTimeEdit,
    SkipSessionRequest,
    StudyPlan,
    SuggestionRequest,
    UserSettings,
)
from .redistribution import redistribute_missed_sessions
from .state import EditStore, JsonFileEditStore
from .status import skip_session
from .utils import _log_debug

router = APIRouter()
logger = logging.getLogger(__name__)
_edit_store: EditStore = JsonFileEditStore()
# 확인 -> 저장 사이에 다른 편집이 끼어들지 않도록 단일 writer 로 직렬화
_EDIT_LOCK = Lock()


def _build_editor(snapshot: PlanSnapshot) -> SessionTimeEditor:
  return SessionTimeEditor(snapshot.study_plans,
                           snapshot.fixed_commitments,
                           snapshot.settings,
                           store=_edit_store,
                           tasks=snapshot.tasks)


def _empty_editor() -> SessionTimeEditor:
  return SessionTimeEditor([], [], UserSettings(), store=_edit_store)


@router.get("/api/health")
def health() -> Dict[str, Any]:
  return {"ok": True}


@router.post("/api/sessions/check", response_model=ConflictResult)
def check_session_time(payload: ConflictCheckRequest):
  editor = _build_editor(payload)
  return editor.check_time_conflict(payload.plan_date,
                                    payload.new_start_time,
                                    payload.session_duration,
                                    payload.exclude_session_id)


@router.post("/api/sessions/suggestions")
def suggest_session_times(payload: SuggestionRequest) -> Dict[str, List[str]]:
  editor = _build_editor(payload)
  suggestions = editor.suggest_times(payload.plan_date,
                                     payload.session_duration,
                                     payload.exclude_session_id)
  return {"suggested_times": suggestions}


@router.post("/api/sessions/edit", response_model=EditResult)
def edit_session_time(payload: SessionEditRequest):
  with _EDIT_LOCK:
    editor = _build_editor(payload)
    result = editor.edit_session_time(payload.plan_date,
                                      payload.task_id,
                                      payload.session_number,
                                      payload.new_start_time,
                                      payload.session_duration)
  _log_debug(f"[API] edit {payload.plan_date} {payload.task_id}#"
             f"{payload.session_number} -> {payload.new_start_time}: {result.success}")
  return result


@router.get("/api/sessions/edits", response_model=List[SessionTimeEdit])
def list_session_edits():
  return _empty_editor().get_all_edits()


@router.delete("/api/sessions/edits/{plan_date}/{task_id}/{session_number}")
def remove_session_edit(plan_date: str, task_id: str,
                        session_number: int) -> Dict[str, Any]:
  with _EDIT_LOCK:
    removed = _empty_editor().remove_edit(plan_date, task_id, session_number)
  if not removed:
    raise HTTPException(status_code=404, detail="Edit not found.")
  return {"ok": True}


@router.post("/api/sessions/edits/clear-temporary")
def clear_temporary_session_edits() -> Dict[str, Any]:
  with _EDIT_LOCK:
    count = _empty_editor().clear_temporary_edits()
  return {"ok": True, "count": count}


@router.post("/api/sessions/skip")
def skip_plan_session(payload: SkipSessionRequest) -> Dict[str, Any]:
  plans = [p.model_copy(deep=True) for p in payload.study_plans]
  found = skip_session(plans,
                       payload.plan_date,
                       payload.task_id,
                       payload.session_number,
                       partial_hours=payload.partial_hours,
                       reason=payload.reason,
                       now=payload.now)
  if not found:
    raise HTTPException(status_code=404, detail="Session not found.")
  return {"ok": True, "study_plans": [p.model_dump() for p in plans]}


@router.post("/api/plans/apply-edits", response_model=List[StudyPlan])
def apply_session_edits(payload: ApplyEditsRequest):
  return _empty_editor().apply_edits_to_plans(payload.study_plans)


@router.post("/api/plans/redistribute")
def redistribute_plans(payload: RedistributeRequest) -> Dict[str, Any]:
  with _EDIT_LOCK:
    editor = _build_editor(payload)
    plans = [p.model_copy(deep=True) for p in payload.study_plans]
    try:
      result = redistribute_missed_sessions(plans,
                                            payload.settings,
                                            payload.fixed_commitments,
                                            payload.tasks,
                                            payload.options,
                                            now=payload.now,
                                            project=editor.get_edited_session)
    except ValueError as exc:
      logger.exception("Redistribution failed")
      raise HTTPException(status_code=400, detail=str(exc)) from exc
  return {
      "result": result.model_dump(),
      "study_plans": [p.model_dump() for p in plans],
  }


@router.post("/api/commitments/for-date", response_model=List[FixedCommitment])
def resolve_commitments_for_date(payload: CommitmentsForDateRequest):
  return commitments_for_date(payload.fixed_commitments, payload.date)
