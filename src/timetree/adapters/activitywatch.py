"""ActivityWatch export parsing into usage records.

Reads an AW JSON export (the format produced by *Export all buckets as
JSON* in the AW web UI or ``GET /api/0/export``) and converts every
``currentwindow`` event into a closed :class:`~timetree.core.types.UsageRecord`.

AW events carry ``timestamp`` + ``duration``; the record end is
``timestamp + duration``.  Record ids are derived from the bucket id and
event timestamp so re-importing the same export yields the same ids.
"""

from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Final

from timetree.core.types import UsageRecord

logger = logging.getLogger(__name__)

_CURRENTWINDOW_TYPE: Final[str] = "currentwindow"
_ID_LENGTH: Final[int] = 16

# Lower-cased AW app names -> stable reverse-domain identities.
_KNOWN_APPS: Final[dict[str, str]] = {
    "firefox": "org.mozilla.firefox",
    "google chrome": "com.google.Chrome",
    "google-chrome": "com.google.Chrome",
    "safari": "com.apple.Safari",
    "code": "com.microsoft.VSCode",
    "visual studio code": "com.microsoft.VSCode",
    "xcode": "com.apple.dt.Xcode",
    "terminal": "com.apple.Terminal",
    "iterm2": "com.googlecode.iterm2",
    "slack": "com.tinyspeck.slackmacgap",
    "zoom.us": "us.zoom.xos",
}


def normalize_app_id(app_name: str) -> str:
    """Map an AW application name to a stable identity.

    Known applications map to their reverse-domain bundle ids; anything
    else becomes ``aw.<lower-cased name with spaces as dashes>``.
    """
    key = app_name.strip().lower()
    if key in _KNOWN_APPS:
        return _KNOWN_APPS[key]
    return "aw." + "-".join(key.split()) if key else "aw.unknown"


def _record_id(bucket_id: str, timestamp: str) -> str:
    digest = hashlib.sha256(f"{bucket_id}|{timestamp}".encode("utf-8")).hexdigest()
    return digest[:_ID_LENGTH]


def _raw_event_to_usage_record(bucket_id: str, raw: dict[str, Any]) -> UsageRecord:
    data = raw.get("data", {})
    app_name = data.get("app") or "unknown"
    start = datetime.fromisoformat(raw["timestamp"])
    duration = max(0.0, float(raw.get("duration", 0)))

    return UsageRecord(
        id=_record_id(bucket_id, raw["timestamp"]),
        app_id=normalize_app_id(app_name),
        app_name=app_name,
        window_title=data.get("title") or None,
        start=start,
        end=start + timedelta(seconds=duration),
    )


def parse_aw_export(path: Path) -> list[UsageRecord]:
    """Parse an ActivityWatch JSON export file into usage records.

    Only buckets of type ``currentwindow`` (``aw-watcher-window`` data)
    are read.  Zero-length events are dropped.

    Args:
        path: Path to the AW export JSON file.

    Returns:
        Usage records sorted by start time.

    Raises:
        FileNotFoundError: If *path* does not exist.
        KeyError: If an event is missing its ``timestamp``.
    """
    raw = json.loads(path.read_text(encoding="utf-8"))
    buckets: dict[str, Any] = raw.get("buckets", raw)

    records: list[UsageRecord] = []
    for bucket_id, bucket in buckets.items():
        bucket_type = bucket.get("type", "")
        if bucket_type != _CURRENTWINDOW_TYPE:
            logger.debug("Skipping bucket %s (type=%s)", bucket_id, bucket_type)
            continue

        logger.info(
            "Processing bucket %s (%d events)",
            bucket_id,
            len(bucket.get("events", [])),
        )
        for raw_event in bucket.get("events", []):
            record = _raw_event_to_usage_record(bucket_id, raw_event)
            if record.end is not None and record.end > record.start:
                records.append(record)

    records.sort(key=lambda r: (r.start, r.id))
    return records
