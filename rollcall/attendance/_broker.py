"""Broker configuration for the attendance import actor.

The actor module calls :func:`ensure_broker_configured` before declaring its
actor so that test runs and local invocations get an in-memory broker rather
than an unreachable RabbitMQ default.
"""

from __future__ import annotations

import os
import sys
import threading

import dramatiq
from dramatiq.brokers.stub import StubBroker

_BROKER_LOCK = threading.Lock()
_broker_configured = False


def _is_running_tests() -> bool:
    """Return whether the process is running under pytest."""
    return "pytest" in sys.modules or any(
        key in os.environ
        for key in ["PYTEST_CURRENT_TEST", "PYTEST_XDIST_WORKER", "PYTEST_ADDOPTS"]
    )


def _should_use_stub_broker() -> bool:
    """Return whether ``ROLLCALL_ALLOW_STUB_BROKER`` or pytest asks for a stub."""
    allow_stub = os.environ.get("ROLLCALL_ALLOW_STUB_BROKER", "")
    return allow_stub.lower() in {"1", "true", "yes"} or _is_running_tests()


def ensure_broker_configured() -> None:
    """Configure a Dramatiq broker once per process.

    A :class:`StubBroker` is installed when stubs are allowed; otherwise the
    Dramatiq default broker must be importable.

    Raises
    ------
    RuntimeError
        If no broker can be configured outside a stub-allowed context.

    """
    global _broker_configured

    if _broker_configured:
        return

    with _BROKER_LOCK:
        if _broker_configured:
            return

        if _should_use_stub_broker():
            dramatiq.set_broker(StubBroker())
        else:  # pragma: no cover - guard for prod misconfigurations
            try:
                dramatiq.get_broker()
            except ImportError as exc:
                message = (
                    "No Dramatiq broker configured. "
                    "Set ROLLCALL_ALLOW_STUB_BROKER=1 for "
                    "local/test runs or install a real broker."
                )
                raise RuntimeError(message) from exc

        _broker_configured = True
