from __future__ import annotations

import json
import logging
import pathlib
from typing import Any, List, Optional, Protocol

from pydantic import ValidationError

from .config import EDITS_DATA_FILE, EDITS_STORE_VERSION
from .models import SessionTimeEdit
from .utils import _log_debug

logger = logging.getLogger(__name__)


class EditStore(Protocol):
    """세션 시간 편집 기록 저장소 (전체 읽기 / 전체 쓰기)"""

    def load(self) -> List[SessionTimeEdit]:
        ...

    def save(self, edits: List[SessionTimeEdit]) -> None:
        ...


def _serialize_edits_payload(edits: List[SessionTimeEdit]) -> dict:
    return {
        "version": EDITS_STORE_VERSION,
        "edits": [e.model_dump() for e in edits],
    }


def _parse_edits_payload(data: Any) -> List[SessionTimeEdit]:
    raw_items: Optional[List[Any]] = None
    if isinstance(data, list):
        raw_items = data
    elif isinstance(data, dict):
        raw_items = data.get("edits")
    if not isinstance(raw_items, list):
        raise ValueError("edits payload is not a list")

    loaded: List[SessionTimeEdit] = []
    for item in raw_items:
        if not isinstance(item, dict):
            continue
        try:
            loaded.append(SessionTimeEdit(**item))
        except ValidationError as exc:
            _log_debug(f"[EDIT STORE] skip invalid record: {exc}")
    return loaded


class JsonFileEditStore:
    """EDITS_DATA_FILE 에 편집 기록을 JSON 으로 저장"""

    def __init__(self, path: Optional[pathlib.Path] = None):
        self.path = pathlib.Path(path) if path is not None else EDITS_DATA_FILE

    def load(self) -> List[SessionTimeEdit]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return _parse_edits_payload(data)
        except (OSError, ValueError) as exc:
            logger.warning("Failed to load session time edits from %s: %s",
                           self.path, exc)
            return []

    def save(self, edits: List[SessionTimeEdit]) -> None:
        try:
            payload = _serialize_edits_payload(edits)
            self.path.write_text(json.dumps(payload, ensure_ascii=False, indent=2),
                                 encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to save session time edits to %s: %s",
                           self.path, exc)
        else:
            _log_debug(f"[EDIT STORE] saved {len(edits)} edits -> {self.path}")


class MemoryEditStore:
    """프로세스 메모리에만 유지 (테스트 / 임시 뷰 용)"""

    def __init__(self, edits: Optional[List[SessionTimeEdit]] = None):
        self._edits = [e.model_copy(deep=True) for e in edits or []]

    def load(self) -> List[SessionTimeEdit]:
        return [e.model_copy(deep=True) for e in self._edits]

    def save(self, edits: List[SessionTimeEdit]) -> None:
        self._edits = [e.model_copy(deep=True) for e in edits]
