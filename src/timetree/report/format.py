"""Duration formatting shared by every tree node and the grand total."""

from __future__ import annotations

from timetree.core.defaults import EMPTY_TOTAL_DISPLAY, SUB_MINUTE_DISPLAY


def format_duration(seconds: float) -> str:
    """Render *seconds* as a short human-readable string.

    * ``0`` (or a negative value, clamped) -> ``"0m 0s"``, the empty-state
      display.
    * under one minute -> ``"<1m"``.
    * otherwise ``"{h}h {m}m"``, with the hours part omitted when zero
      (``"45m"``, ``"2h 0m"``).

    Args:
        seconds: Duration in seconds.

    Returns:
        The formatted duration.
    """
    if seconds <= 0:
        return EMPTY_TOTAL_DISPLAY
    if seconds < 60:
        return SUB_MINUTE_DISPLAY

    total_minutes = int(seconds // 60)
    hours, minutes = divmod(total_minutes, 60)
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"
