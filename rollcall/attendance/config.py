"""Configuration for the attendance import pipeline and scheduler.

Usage
-----
Create a configuration with defaults:

>>> config = ImportConfig(attendance_url="https://example.test/attendance.json")
>>> config.interval_s
20.0

Or load from environment variables:

>>> import os
>>> os.environ["ROLLCALL_IMPORT_INTERVAL_MS"] = "60000"
>>> ImportConfig.from_env().interval_s
60.0

"""

from __future__ import annotations

import dataclasses as dc
import os

_DEFAULT_INTERVAL_MS = 20_000
_DEFAULT_FETCH_TIMEOUT_S = 20.0
_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off"})


def _env_text(name: str) -> str | None:
    value = os.environ.get(name, "").strip()
    return value or None


def _parse_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        msg = f"{env_var} must be an integer, got: {raw!r}"
        raise ValueError(msg) from exc
    if value < 1:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def _parse_positive_float(env_var: str, default: float) -> float:
    """Read a positive float env var, falling back to a default."""
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


def _parse_bool(env_var: str, *, default: bool) -> bool:
    raw = os.environ.get(env_var, "").strip().lower()
    if not raw:
        return default
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    msg = f"{env_var} must be a boolean flag, got: {raw!r}"
    raise ValueError(msg)


@dc.dataclass(frozen=True, slots=True)
class ImportConfig:
    """Settings for fetching, scheduling and labelling import runs.

    Attributes
    ----------
    attendance_url
        URL of the attendance JSON document. When ``None`` every run fails
        with a configuration error, but the scheduler can still be started
        and stopped.
    roster_url
        Optional URL of a roster JSON document.
    interval_s
        Seconds between scheduler ticks. Default 20.
    run_immediately
        Whether starting the scheduler also triggers an immediate run.
    autostart
        Whether the HTTP runtime starts the scheduler on startup.
    fetch_timeout_s
        Timeout applied to each remote request.
    source_label
        Label recorded on run outcomes.

    """

    attendance_url: str | None = None
    roster_url: str | None = None
    interval_s: float = _DEFAULT_INTERVAL_MS / 1000
    run_immediately: bool = True
    autostart: bool = False
    fetch_timeout_s: float = _DEFAULT_FETCH_TIMEOUT_S
    source_label: str = "remote"

    @classmethod
    def from_env(cls) -> ImportConfig:
        """Create configuration from ``ROLLCALL_*`` environment variables.

        Reads ``ROLLCALL_ATTENDANCE_URL`` (falling back to
        ``ROLLCALL_JSON_URL``), ``ROLLCALL_ROSTER_URL``,
        ``ROLLCALL_IMPORT_INTERVAL_MS``, ``ROLLCALL_IMPORT_RUN_IMMEDIATELY``,
        ``ROLLCALL_IMPORT_AUTOSTART``, ``ROLLCALL_FETCH_TIMEOUT_S`` and
        ``ROLLCALL_SOURCE_LABEL``.

        Raises
        ------
        ValueError
            If a numeric or boolean variable cannot be parsed.

        """
        interval_ms = _parse_positive_int(
            "ROLLCALL_IMPORT_INTERVAL_MS", _DEFAULT_INTERVAL_MS
        )
        return cls(
            attendance_url=_env_text("ROLLCALL_ATTENDANCE_URL")
            or _env_text("ROLLCALL_JSON_URL"),
            roster_url=_env_text("ROLLCALL_ROSTER_URL"),
            interval_s=interval_ms / 1000,
            run_immediately=_parse_bool(
                "ROLLCALL_IMPORT_RUN_IMMEDIATELY", default=True
            ),
            autostart=_parse_bool("ROLLCALL_IMPORT_AUTOSTART", default=False),
            fetch_timeout_s=_parse_positive_float(
                "ROLLCALL_FETCH_TIMEOUT_S", _DEFAULT_FETCH_TIMEOUT_S
            ),
            source_label=_env_text("ROLLCALL_SOURCE_LABEL") or "remote",
        )
