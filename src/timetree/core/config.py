"""Persisted view settings.

Stores the inclusion toggles and TimePeriod policy as a JSON file inside
the data directory, so repeated CLI runs render the same view.

Typical location::

    data/view.json

Usage::

    from timetree.core.config import ViewConfig

    cfg = ViewConfig(data_dir)
    cfg.include_titles          # True by default
    cfg.update({"include_titles": False})   # persists immediately
    cfg.as_dict()
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Final

from timetree.core.defaults import (
    DEFAULT_DATA_DIR,
    DEFAULT_IDLE_GAP_SECONDS,
    DEFAULT_PERIOD_POLICY,
)
from timetree.hierarchy.periods import PeriodPolicy, policy_from_name

logger = logging.getLogger(__name__)

_CONFIG_FILENAME: Final[str] = "view.json"

_BOOL_KEYS: Final[tuple[str, ...]] = (
    "include_manual_records",
    "include_usage_records",
    "include_titles",
)

_DEFAULTS: Final[dict[str, Any]] = {
    "include_manual_records": True,
    "include_usage_records": True,
    "include_titles": True,
    "period_policy": DEFAULT_PERIOD_POLICY,
    "idle_gap_seconds": DEFAULT_IDLE_GAP_SECONDS,
}


def _coerce(key: str, value: Any) -> Any:
    """Validate and normalize one setting; raises ``ValueError`` on bad input."""
    if key in _BOOL_KEYS:
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.lower() in ("true", "false", "1", "0", "yes", "no"):
            return value.lower() in ("true", "1", "yes")
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    if key == "period_policy":
        policy_from_name(str(value))
        return str(value)
    if key == "idle_gap_seconds":
        try:
            seconds = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"idle_gap_seconds must be a number, got {value!r}") from None
        if seconds <= 0:
            raise ValueError(f"idle_gap_seconds must be positive, got {seconds}")
        return seconds
    raise ValueError(f"Unknown setting {key!r}; must be one of {sorted(_DEFAULTS)}")


class ViewConfig:
    """Read/write access to ``view.json`` in a data directory.

    Missing keys fall back to defaults.  A corrupt file is ignored with a
    warning (and overwritten on the next update).  All mutations are
    validated and persisted immediately; the file is plain JSON so it can
    be hand-edited.
    """

    def __init__(self, data_dir: Path | str = DEFAULT_DATA_DIR) -> None:
        self._path = Path(data_dir) / _CONFIG_FILENAME
        self._data: dict[str, Any] = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text("utf-8"))
        except (json.JSONDecodeError, OSError):
            logger.warning("Corrupt config at %s; using defaults", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.warning("Config at %s is not an object; using defaults", self._path)
            return {}

        data: dict[str, Any] = {}
        for key, value in raw.items():
            try:
                data[key] = _coerce(key, value)
            except ValueError as exc:
                logger.warning("Ignoring config entry %s: %s", key, exc)
        return data

    def _persist(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2) + "\n", "utf-8")

    def _get(self, key: str) -> Any:
        return self._data.get(key, _DEFAULTS[key])

    # -- toggles ---------------------------------------------------------------

    @property
    def include_manual_records(self) -> bool:
        return self._get("include_manual_records")

    @property
    def include_usage_records(self) -> bool:
        return self._get("include_usage_records")

    @property
    def include_titles(self) -> bool:
        return self._get("include_titles")

    # -- time periods ----------------------------------------------------------

    @property
    def period_policy(self) -> str:
        return self._get("period_policy")

    @property
    def idle_gap_seconds(self) -> float:
        return self._get("idle_gap_seconds")

    def build_period_policy(self) -> PeriodPolicy:
        return policy_from_name(self.period_policy, idle_gap_seconds=self.idle_gap_seconds)

    # -- generic helpers -------------------------------------------------------

    def as_dict(self) -> dict[str, Any]:
        return {key: self._get(key) for key in _DEFAULTS}

    def update(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Validate and merge *patch* into the config, then persist.  Returns the full config.

        Raises:
            ValueError: If any key is unknown or any value is invalid; in
                that case nothing is written.
        """
        coerced = {key: _coerce(key, value) for key, value in patch.items()}
        self._data.update(coerced)
        self._persist()
        return self.as_dict()

    def reset(self) -> dict[str, Any]:
        """Restore all defaults and persist."""
        self._data = {}
        self._persist()
        return self.as_dict()
