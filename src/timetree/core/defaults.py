"""Centralised default constants for timetree.

Every project-wide magic number / string lives here.
Import these instead of hard-coding values in function signatures or CLI options.
"""

from __future__ import annotations

from typing import Final

# ── Hierarchy ──
UNASSIGNED_PROJECT_KEY: Final[str] = "unassigned"
UNASSIGNED_PROJECT_NAME: Final[str] = "Unassigned"
NO_MANUAL_RECORD_KEY: Final[str] = "none"
NO_MANUAL_RECORD_NAME: Final[str] = "No Manual Record"
DEFAULT_PROJECT_COLOR: Final[str] = "#4A90E2"
KEY_SEPARATOR: Final[str] = "/"

# ── Time periods ──
DEFAULT_PERIOD_POLICY: Final[str] = "single"
DEFAULT_IDLE_GAP_SECONDS: Final[float] = 300.0
OPEN_END_LABEL: Final[str] = "now"

# (start hour inclusive, end hour exclusive, label); together they cover 0-24.
DAYPART_BUCKETS: Final[tuple[tuple[int, int, str], ...]] = (
    (0, 6, "Late Night (12AM-6AM)"),
    (6, 9, "Early Morning (6AM-9AM)"),
    (9, 12, "Morning (9AM-12PM)"),
    (12, 14, "Lunch Time (12PM-2PM)"),
    (14, 17, "Afternoon (2PM-5PM)"),
    (17, 20, "Evening (5PM-8PM)"),
    (20, 24, "Night (8PM-12AM)"),
)

# ── Display ──
EMPTY_TOTAL_DISPLAY: Final[str] = "0m 0s"
SUB_MINUTE_DISPLAY: Final[str] = "<1m"
EMPTY_STATE_MESSAGE: Final[str] = "No activities found"

# ── Paths ──
DEFAULT_DATA_DIR: Final[str] = "data"
DEFAULT_OUT_DIR: Final[str] = "artifacts"
