"""Logging layer for MediaSession2MQTT.

Human-readable and/or JSON log output with the correlation id of the current
publish generation attached to every record.
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Mapping
from datetime import UTC, datetime
from pathlib import Path
from typing import cast

from typing_extensions import override

__all__ = [
    "HumanReadableFormatter",
    "JSONFormatter",
    "MediaSessionLogger",
    "configure_from_environ",
    "configure_third_party_loggers",
    "get_logger",
    "set_package_level",
]


def _extra_context(record: logging.LogRecord) -> Mapping[str, object] | None:
    extra_data = getattr(record, "extra_data", None)
    if isinstance(extra_data, Mapping) and extra_data:
        return cast("Mapping[str, object]", extra_data)
    return None


def _short_correlation_id(correlation_id: str) -> str:
    """`pub-3f2a9c1d...` -> `pub-3f2a9c1d`; the generation prefix is kept in full."""
    prefix, sep, rest = correlation_id.partition("-")
    if sep and rest:
        return f"{prefix}-{rest[:8]}"
    return correlation_id[:8]


class JSONFormatter(logging.Formatter):
    """One JSON object per record."""

    @override
    def format(self, record: logging.LogRecord) -> str:
        # Import here to avoid circular dependency
        from mediasession2mqtt.correlation import get_correlation_id

        log_data: dict[str, object] = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
            "correlation_id": get_correlation_id(),
        }

        context = _extra_context(record)
        if context:
            log_data["context"] = dict(context)
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """`timestamp level [module:line] [corr-id] > message | key=value`"""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s.%(msecs)03d %(levelname)s [%(module)s:%(lineno)d] %(correlation_id)s > %(message)s",
            datefmt="%m/%d/%y %H:%M:%S",
        )

    @override
    def format(self, record: logging.LogRecord) -> str:
        from mediasession2mqtt.correlation import get_correlation_id

        correlation_id = get_correlation_id()
        record.correlation_id = f"[{_short_correlation_id(correlation_id)}]" if correlation_id else "[--------]"

        formatted = super().format(record)
        context = _extra_context(record)
        if context:
            context_str = " | ".join(f"{k}={v}" for k, v in context.items())
            formatted = f"{formatted} | {context_str}"
        return formatted


def _build_handlers(
    log_format: str,
    json_file: str | Path | None,
    human_output: str | None,
    level: int,
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []

    if log_format in ("json", "both") and json_file:
        try:
            json_path = Path(json_file).expanduser()
            json_path.parent.mkdir(parents=True, exist_ok=True)
            json_handler = logging.FileHandler(json_path, mode="a")
        except OSError as e:
            print(f"Warning: Failed to create JSON log file {json_file}: {e}", file=sys.stderr)
        else:
            json_handler.setFormatter(JSONFormatter())
            handlers.append(json_handler)

    if log_format in ("human", "both"):
        output = human_output or "stdout"
        human_handler: logging.Handler
        if output == "stdout":
            human_handler = logging.StreamHandler(sys.stdout)
        elif output == "stderr":
            human_handler = logging.StreamHandler(sys.stderr)
        else:
            try:
                human_path = Path(output).expanduser()
                human_path.parent.mkdir(parents=True, exist_ok=True)
                human_handler = logging.FileHandler(human_path, mode="a")
            except OSError as e:
                print(f"Warning: Failed to create human log file {output}: {e}", file=sys.stderr)
                human_handler = logging.StreamHandler(sys.stdout)
        human_handler.setFormatter(HumanReadableFormatter())
        handlers.append(human_handler)

    for handler in handlers:
        handler.setLevel(level)
    return handlers


class MediaSessionLogger:
    """Thin wrapper over :class:`logging.Logger` with structured ``extra`` context."""

    def __init__(
        self,
        name: str,
        log_format: str = "human",
        json_file: str | Path | None = None,
        human_output: str | None = "stdout",
    ) -> None:
        """Initialize the logger.

        Args:
            name: Logger name (typically module name)
            log_format: "json", "human", or "both"
            json_file: Path for JSON output (None disables JSON file output)
            human_output: "stdout", "stderr", or a file path

        """
        self.name: str = name
        self.logger: logging.Logger = logging.getLogger(name)
        self.log_format: str = log_format

        from mediasession2mqtt.const import MEDIASESSION_DEBUG

        self.logger.setLevel(logging.DEBUG if MEDIASESSION_DEBUG else logging.INFO)

        # Loggers are process-wide; only configure once
        if not self.logger.handlers:
            for handler in _build_handlers(log_format, json_file, human_output, self.logger.level):
                self.logger.addHandler(handler)

    def _log(self, level: int, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        extra_payload = {"extra_data": dict(extra)} if extra else None
        self.logger.log(level, msg, *args, extra=extra_payload)

    def debug(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.DEBUG, msg, *args, extra=extra)

    def info(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.INFO, msg, *args, extra=extra)

    def warning(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.WARNING, msg, *args, extra=extra)

    def error(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        self._log(logging.ERROR, msg, *args, extra=extra)

    def exception(self, msg: str, *args: object, extra: Mapping[str, object] | None = None) -> None:
        """Log at ERROR with the active exception's traceback."""
        log_extra = {"extra_data": dict(extra)} if extra else None
        self.logger.exception(msg, *args, extra=log_extra)

    def set_level(self, level: int) -> None:
        """Set the level of the logger and all of its handlers."""
        self.logger.setLevel(level)
        for handler in self.logger.handlers:
            handler.setLevel(level)

    @property
    def handlers(self) -> list[logging.Handler]:
        return self.logger.handlers


# Output settings applied after startup (e.g. from an env file), see configure_from_environ()
_output_config: dict[str, str | None] = {}


def get_logger(
    name: str,
    log_format: str | None = None,
    json_file: str | Path | None = None,
    human_output: str | None = None,
) -> MediaSessionLogger:
    """Get or create a :class:`MediaSessionLogger`, defaulting to the environment configuration."""
    from mediasession2mqtt.const import (
        MEDIASESSION_LOG_FORMAT,
        MEDIASESSION_LOG_HUMAN_OUTPUT,
        MEDIASESSION_LOG_JSON_FILE,
    )

    return MediaSessionLogger(
        name=name,
        log_format=log_format or _output_config.get("log_format") or MEDIASESSION_LOG_FORMAT,
        json_file=json_file or _output_config.get("json_file", MEDIASESSION_LOG_JSON_FILE),
        human_output=human_output or _output_config.get("human_output") or MEDIASESSION_LOG_HUMAN_OUTPUT,
    )


def configure_third_party_loggers() -> None:
    """Quiet the MQTT library loggers."""
    for name, level in (("aiomqtt", logging.WARNING), ("mqtt", logging.ERROR)):
        third_party = logging.getLogger(name)
        third_party.setLevel(level)
        third_party.propagate = False


def _package_loggers() -> list[logging.Logger]:
    return [
        candidate
        for name, candidate in list(logging.root.manager.loggerDict.items())
        if name.split(".", 1)[0] == "mediasession2mqtt" and isinstance(candidate, logging.Logger)
    ]


def set_package_level(level: int) -> None:
    """Apply ``level`` to every logger of this package created so far."""
    for candidate in _package_loggers():
        candidate.setLevel(level)
        for handler in candidate.handlers:
            handler.setLevel(level)


def configure_from_environ() -> None:
    """Re-read the ``MEDIASESSION_LOG_*`` variables and rebuild the package's handlers.

    Loggers are created at import time, before an env file can be loaded.
    """
    import os

    log_format = os.environ.get("MEDIASESSION_LOG_FORMAT", "human")
    json_file = os.environ.get("MEDIASESSION_LOG_JSON_FILE") or None
    human_output = os.environ.get("MEDIASESSION_LOG_HUMAN_OUTPUT", "stdout")
    _output_config.update(log_format=log_format, json_file=json_file, human_output=human_output)

    for candidate in _package_loggers():
        for handler in list(candidate.handlers):
            candidate.removeHandler(handler)
            handler.close()
        for handler in _build_handlers(log_format, json_file, human_output, candidate.level):
            candidate.addHandler(handler)
