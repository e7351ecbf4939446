from __future__ import annotations

import json
import os
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import requests
from mcp.server.fastmcp import FastMCP

BACKEND_BASE_URL = os.getenv("BACKEND_BASE_URL", "http://localhost:8000").rstrip("/")
BACKEND_API_BASE = os.getenv("BACKEND_API_BASE", "/api").rstrip("/")
REQUEST_TIMEOUT = float(os.getenv("MCP_BACKEND_TIMEOUT", "15"))
DEBUG_MODE = os.getenv("MCP_DEBUG", "1").strip() in ("1", "true", "True", "yes")
LOG_REQUESTS = os.getenv("MCP_LOG_REQUESTS", "0").strip() in ("1", "true", "True", "yes")

mcp = FastMCP("session-planner")


def _log_tool_call(tool_name: str, input_data: Dict[str, Any], output_data: Dict[str, Any]) -> None:
  """도구 호출 입출력을 터미널에 출력"""
  if not DEBUG_MODE:
    return
  print(f"\n{'='*80}")
  print(f"Tool: {tool_name}")
  print(f"{'='*80}")
  print("input:")
  print(json.dumps(input_data, indent=2, ensure_ascii=False, default=str))
  print("\noutput:")
  print(json.dumps(output_data, indent=2, ensure_ascii=False, default=str))
  print(f"{'='*80}\n")


class RequestLoggerMiddleware:
  def __init__(self, app: Any):
    self.app = app

  async def __call__(self, scope: Dict[str, Any], receive: Any, send: Any) -> None:
    if scope.get("type") == "http":
      headers = self._decode_headers(scope.get("headers") or [])
      print(f"[MCP HTTP] {scope.get('method', '')} {scope.get('path', '')} "
            f"content-type={headers.get('content-type', '')}")
    await self.app(scope, receive, send)

  def _decode_headers(self, raw_headers: List[Tuple[bytes, bytes]]) -> Dict[str, str]:
    decoded: Dict[str, str] = {}
    for key, value in raw_headers:
      decoded[key.decode("latin-1").lower()] = value.decode("latin-1")
    return decoded


def _api_path(path: str) -> str:
  return f"{BACKEND_API_BASE}/{path.lstrip('/')}"


def _request(method: str,
             path: str,
             payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
  url = f"{BACKEND_BASE_URL}{path}"
  try:
    resp = requests.request(method, url, json=payload, timeout=REQUEST_TIMEOUT)
  except requests.RequestException as exc:
    return {
        "ok": False,
        "code": "request_failed",
        "message": f"Backend request failed: {exc}",
    }

  try:
    data = resp.json()
  except ValueError:
    data = {"raw": resp.text}

  if resp.status_code >= 400:
    return {
        "ok": False,
        "code": "backend_error",
        "status": resp.status_code,
        "error": data,
    }

  return {"ok": True, "data": data}


def _snapshot(study_plans: Optional[List[Dict[str, Any]]],
              fixed_commitments: Optional[List[Dict[str, Any]]],
              settings: Optional[Dict[str, Any]],
              tasks: Optional[List[Dict[str, Any]]]) -> Dict[str, Any]:
  payload: Dict[str, Any] = {
      "study_plans": study_plans or [],
      "fixed_commitments": fixed_commitments or [],
      "tasks": tasks or [],
  }
  if settings:
    payload["settings"] = settings
  return payload


@mcp.tool(name="sessions.check_time")
def sessions_check_time(
    plan_date: str,
    new_start_time: str,
    session_duration: float,
    exclude_session_id: Optional[str] = None,
    study_plans: Optional[List[Dict[str, Any]]] = None,
    fixed_commitments: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[Dict[str, Any]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
  """세션을 new_start_time 으로 옮길 수 있는지 확인 (충돌 시 대안 시간 포함)"""
  payload = _snapshot(study_plans, fixed_commitments, settings, tasks)
  payload.update({
      "plan_date": plan_date,
      "new_start_time": new_start_time,
      "session_duration": session_duration,
      "exclude_session_id": exclude_session_id,
  })
  result = _request("POST", _api_path("sessions/check"), payload)
  _log_tool_call("sessions.check_time", payload, result)
  return result


@mcp.tool(name="sessions.suggest_times")
def sessions_suggest_times(
    plan_date: str,
    session_duration: float,
    exclude_session_id: Optional[str] = None,
    study_plans: Optional[List[Dict[str, Any]]] = None,
    fixed_commitments: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[Dict[str, Any]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
  payload = _snapshot(study_plans, fixed_commitments, settings, tasks)
  payload.update({
      "plan_date": plan_date,
      "session_duration": session_duration,
      "exclude_session_id": exclude_session_id,
  })
  result = _request("POST", _api_path("sessions/suggestions"), payload)
  _log_tool_call("sessions.suggest_times", payload, result)
  return result


@mcp.tool(name="sessions.edit_time")
def sessions_edit_time(
    plan_date: str,
    task_id: str,
    session_number: int,
    new_start_time: str,
    session_duration: float,
    study_plans: Optional[List[Dict[str, Any]]] = None,
    fixed_commitments: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[Dict[str, Any]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
  payload = _snapshot(study_plans, fixed_commitments, settings, tasks)
  payload.update({
      "plan_date": plan_date,
      "task_id": task_id,
      "session_number": session_number,
      "new_start_time": new_start_time,
      "session_duration": session_duration,
  })
  result = _request("POST", _api_path("sessions/edit"), payload)
  _log_tool_call("sessions.edit_time", payload, result)
  return result


@mcp.tool(name="sessions.list_edits")
def sessions_list_edits() -> Dict[str, Any]:
  result = _request("GET", _api_path("sessions/edits"))
  _log_tool_call("sessions.list_edits", {}, result)
  return result


@mcp.tool(name="sessions.remove_edit")
def sessions_remove_edit(plan_date: str, task_id: str, session_number: int) -> Dict[str, Any]:
  path = _api_path(
      f"sessions/edits/{quote(plan_date)}/{quote(task_id, safe='')}/{int(session_number)}")
  result = _request("DELETE", path)
  _log_tool_call("sessions.remove_edit", {
      "plan_date": plan_date,
      "task_id": task_id,
      "session_number": session_number,
  }, result)
  return result


@mcp.tool(name="sessions.skip")
def sessions_skip(
    study_plans: List[Dict[str, Any]],
    plan_date: str,
    task_id: str,
    session_number: int,
    partial_hours: Optional[float] = None,
) -> Dict[str, Any]:
  """놓친 세션 건너뛰기. partial_hours 를 주면 그만큼만 줄이고 나머지는 재배치 대상으로 남김"""
  payload: Dict[str, Any] = {
      "study_plans": study_plans,
      "plan_date": plan_date,
      "task_id": task_id,
      "session_number": session_number,
  }
  if partial_hours:
    payload["partial_hours"] = partial_hours
  result = _request("POST", _api_path("sessions/skip"), payload)
  _log_tool_call("sessions.skip", {k: v for k, v in payload.items() if k != "study_plans"},
                 result)
  return result


@mcp.tool(name="plans.redistribute")
def plans_redistribute(
    study_plans: List[Dict[str, Any]],
    fixed_commitments: Optional[List[Dict[str, Any]]] = None,
    settings: Optional[Dict[str, Any]] = None,
    tasks: Optional[List[Dict[str, Any]]] = None,
    options: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
  """놓친 세션을 앞으로의 빈 시간대로 재배치"""
  payload = _snapshot(study_plans, fixed_commitments, settings, tasks)
  if options:
    payload["options"] = options
  result = _request("POST", _api_path("plans/redistribute"), payload)
  _log_tool_call("plans.redistribute", {"plans": len(study_plans)}, result)
  return result


if __name__ == "__main__":
  import uvicorn

  host = os.getenv("MCP_HOST", "0.0.0.0")
  port = int(os.getenv("MCP_PORT", "8001"))
  app = mcp.streamable_http_app()
  if LOG_REQUESTS:
    app = RequestLoggerMiddleware(app)
  uvicorn.run(app, host=host, port=port)
