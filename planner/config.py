"""
config.py -- Environment-driven settings for the planner.

Values come from the process environment, after loading the project-level
.env file if one exists.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent

load_dotenv(PROJECT_ROOT / ".env")

# Local tier
CACHE_DIR: Path = Path(os.getenv("PLANNER_CACHE_DIR", str(PROJECT_ROOT / ".planner-cache")))

# Remote tier (PostgREST-style endpoint, e.g. https://<project>.supabase.co/rest/v1)
REMOTE_URL: str = os.getenv("PLANNER_REMOTE_URL", "")
REMOTE_KEY: str = os.getenv("PLANNER_REMOTE_KEY", "")
REMOTE_TIMEOUT_SECONDS: float = float(os.getenv("PLANNER_REMOTE_TIMEOUT", "10"))

# Service
API_PORT: int = int(os.getenv("PLANNER_API_PORT", "3002"))
DEFAULT_SHEET: str = os.getenv("PLANNER_DEFAULT_SHEET", "LKG")
CORS_ORIGINS: list[str] = [
    origin.strip()
    for origin in os.getenv("PLANNER_CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if origin.strip()
]
