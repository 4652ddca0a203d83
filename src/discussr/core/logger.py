"""
Structured logging with key=value and JSON output.

[Logger][discussr.core.logger.Logger] wraps a stdlib ``logging.Logger`` and
turns keyword arguments into structured fields. The
[StructuredFormatter][discussr.core.logger.StructuredFormatter] renders
those fields as ``key=value`` pairs; installed on the root handler it also
formats the plain ``logging.getLogger(__name__)`` calls used by the nips and
utils layers, so all output shares one shape.

Examples:
    ```python
    logger = Logger("moderation")
    logger.info("approval_published", post_id="ab12", relays=2)
    # info moderation approval_published post_id=ab12 relays=2
    ```
"""

from __future__ import annotations

import datetime
import json
import logging
from typing import Any, ClassVar


def _truncate(value: Any, max_length: int | None) -> Any:
    s = str(value)
    if max_length and len(s) > max_length:
        return s[:max_length] + f"...<truncated {len(s) - max_length} chars>"
    return value


def format_kv_pairs(
    kwargs: dict[str, Any],
    max_value_length: int | None = 1000,
    prefix: str = " ",
) -> str:
    """Render *kwargs* as space-separated ``key=value`` pairs.

    Values containing whitespace, ``=`` or quotes are escaped and wrapped in
    double quotes. Empty values are rendered as ``key=""``.

    Args:
        kwargs: Fields to render.
        max_value_length: Truncate longer values; ``None`` disables truncation.
        prefix: Prepended to a non-empty result.

    Returns:
        The rendered pairs, or an empty string when *kwargs* is empty.
    """
    if not kwargs:
        return ""

    parts = []
    for key, value in kwargs.items():
        s = str(_truncate(value, max_value_length))
        if not s or any(c in s for c in ' ="\''):
            escaped = s.replace("\\", "\\\\").replace('"', '\\"')
            parts.append(f'{key}="{escaped}"')
        else:
            parts.append(f"{key}={s}")
    return prefix + " ".join(parts)


class StructuredFormatter(logging.Formatter):
    """Render records as ``level logger message key=value ...``.

    Fields are read from the ``structured_kv`` extra attached by
    [Logger][discussr.core.logger.Logger]; records without it are rendered
    with the same prefix and no fields.
    """

    def format(self, record: logging.LogRecord) -> str:
        line = f"{record.levelname.lower()} {record.name} {record.getMessage()}"
        fields: dict[str, Any] = getattr(record, "structured_kv", {})
        if fields:
            line += format_kv_pairs(fields)
        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class Logger:
    """Structured logger accepting keyword fields on every call.

    Args:
        name: Name passed to ``logging.getLogger``.
        json_output: Emit one JSON object per record instead of attaching
            ``structured_kv`` for the formatter.
        max_value_length: Truncation limit for field values (default 1000).
    """

    _DEFAULT_MAX_VALUE_LENGTH: ClassVar[int] = 1000

    def __init__(
        self,
        name: str,
        *,
        json_output: bool = False,
        max_value_length: int | None = None,
    ) -> None:
        self._logger = logging.getLogger(name)
        self._json_output = json_output
        self._max_value_length = (
            self._DEFAULT_MAX_VALUE_LENGTH if max_value_length is None else max_value_length
        )

    @property
    def name(self) -> str:
        return self._logger.name

    def _emit(self, level: int, msg: str, kwargs: dict[str, Any], *, exc_info: bool) -> None:
        if not self._logger.isEnabledFor(level):
            return
        fields = {k: _truncate(v, self._max_value_length) for k, v in kwargs.items()}
        if self._json_output:
            record = {
                "timestamp": datetime.datetime.now(datetime.UTC).isoformat(),
                "level": logging.getLevelName(level).lower(),
                "logger": self._logger.name,
                "message": msg,
                **fields,
            }
            self._logger.log(level, json.dumps(record, default=str), exc_info=exc_info)
        else:
            extra = {"structured_kv": fields} if fields else {}
            self._logger.log(level, msg, extra=extra, exc_info=exc_info)

    def debug(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.DEBUG, msg, kwargs, exc_info=False)

    def info(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.INFO, msg, kwargs, exc_info=False)

    def warning(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.WARNING, msg, kwargs, exc_info=False)

    def error(self, msg: str, **kwargs: Any) -> None:
        self._emit(logging.ERROR, msg, kwargs, exc_info=False)

    def exception(self, msg: str, **kwargs: Any) -> None:
        """Log at ERROR level with the active exception's traceback."""
        self._emit(logging.ERROR, msg, kwargs, exc_info=True)
