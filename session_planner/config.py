from __future__ import annotations

import os
import pathlib
import re

PLANNER_DEBUG = os.getenv("PLANNER_DEBUG", "0") == "1"

# 0:00 ~ 23:59, 자정은 24:00 만 허용
HHMM_RE = re.compile(r"^(?:(?:[01]?\d|2[0-3])(?::[0-5]\d)?|24(?::00)?)$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

BASE_DIR = pathlib.Path(__file__).resolve().parent.parent
EDITS_DATA_FILE = pathlib.Path(
    os.getenv("EDITS_DATA_FILE", str(BASE_DIR / "session_edits.json")))
EDITS_STORE_VERSION = 1

CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "")
cors_origins: list[str] = [
    origin.strip() for origin in CORS_ALLOW_ORIGINS.split(",") if origin.strip()
]

# -------------------------
# 스케줄링 기본값
# -------------------------
SUGGESTION_STEP_MINUTES = int(os.getenv("SUGGESTION_STEP_MINUTES", "30"))
MAX_SUGGESTIONS = int(os.getenv("MAX_SUGGESTIONS", "3"))
DEFAULT_REDISTRIBUTION_DAYS = int(os.getenv("DEFAULT_REDISTRIBUTION_DAYS", "14"))
WEEKEND_DAYS = {0, 6}  # 0 = Sunday
