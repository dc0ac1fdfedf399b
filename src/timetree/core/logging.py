"""Sanitizing log filter that redacts record titles and notes before they reach handlers.

Window titles, document paths, URLs, and manual-record notes routinely
carry private content.  Debug logging around matching and tree building
must never leak them, so this filter rewrites ``key=value`` / ``key: value``
pairs for those keys.
"""

from __future__ import annotations

import logging
import re
from typing import Final

_SENSITIVE_KEYS: Final[tuple[str, ...]] = (
    "window_title",
    "app_title",
    "document_path",
    "notes",
    "title",
    "url",
)

_REDACTED: Final[str] = "[REDACTED]"

_SENSITIVE_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\b(?P<key>"
    + "|".join(re.escape(k) for k in _SENSITIVE_KEYS)
    + r")\s*[=:]\s*(?P<value>\"[^\"]*\"|'[^']*'|\S+)",
    re.IGNORECASE,
)


def redact_message(message: str) -> str:
    """Replace sensitive ``key=value`` or ``key: value`` pairs with redaction markers.

    Args:
        message: Raw log message string.

    Returns:
        Message with sensitive values replaced by ``[REDACTED]``.
    """
    return _SENSITIVE_PATTERN.sub(
        lambda m: f"{m.group('key')}={_REDACTED}", message,
    )


class SanitizingFilter(logging.Filter):
    """A :class:`logging.Filter` that rewrites log records to strip titles and notes."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.args:
            record.msg = redact_message(record.getMessage())
            record.args = None
        else:
            record.msg = redact_message(str(record.msg))
        return True


def install_sanitizing_filter(
    logger: logging.Logger | None = None,
    *,
    handler_level: bool = False,
) -> SanitizingFilter:
    """Attach a :class:`SanitizingFilter` to *logger* (or the root logger).

    Args:
        logger: Target logger.  Defaults to the root logger if ``None``.
        handler_level: If ``True``, install on each handler of *logger*
            instead of the logger itself.  Filters on a logger do not see
            records propagated from child loggers, so install at handler
            level when sanitizing everything routed through the root.

    Returns:
        The filter instance that was installed (useful for later removal).
    """
    filt = SanitizingFilter()
    target = logger or logging.getLogger()

    if handler_level:
        for handler in target.handlers:
            handler.addFilter(filt)
    else:
        target.addFilter(filt)

    return filt


def configure_cli_logging(verbose: bool = False) -> None:
    """Route ``timetree`` log output to stderr with titles redacted."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    pkg_logger = logging.getLogger("timetree")
    pkg_logger.handlers[:] = [handler]
    install_sanitizing_filter(pkg_logger, handler_level=True)
    pkg_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    pkg_logger.propagate = False
