"""Command lifecycle telemetry (opt-out).

Events are validated, then handed to a sink on a daemon thread. Every pending
send is tracked as a future until it settles so the CLI can wait for them,
for a bounded time, right before exiting.
"""

from __future__ import annotations

import json
import os
import platform
import threading
import time
import uuid
from concurrent import futures
from datetime import datetime, timezone
from importlib import resources
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator

import jsonschema
import requests

from skyctl.settings import RuntimeSettings, falsy, truthy
from skyctl.utils.logger import logger

LEVELS = {"info", "warn", "error"}
STATUSES = ("started", "completed", "errored")
EVENT_PREFIX = "skyctl command"

Sink = Callable[[dict[str, Any]], None]

_TELEMETRY_VALIDATOR = None
_FILE_LOCK = threading.Lock()


def read_metrics_permission(settings: RuntimeSettings) -> bool | None:
    path = settings.metrics_config_file
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return None
    permission = data.get("permission") if isinstance(data, dict) else None
    if isinstance(permission, dict) and isinstance(permission.get("enabled"), bool):
        return permission["enabled"]
    return None


def write_metrics_permission(settings: RuntimeSettings, enabled: bool) -> None:
    path = settings.metrics_config_file
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "permission": {
            "enabled": enabled,
            "date": datetime.now(timezone.utc).isoformat(),
        }
    }
    path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def telemetry_enabled(settings: RuntimeSettings, send_metrics: bool | None = None) -> bool:
    """Environment beats project config, which beats the stored permission."""

    env_value = os.environ.get("SKYCTL_SEND_METRICS")
    if truthy(env_value):
        return True
    if falsy(env_value):
        return False
    if isinstance(send_metrics, bool):
        return send_metrics
    stored = read_metrics_permission(settings)
    return True if stored is None else stored


def build_record(
    status: str,
    payload: dict[str, Any],
    *,
    level: str = "info",
    correlation_id: str | None = None,
    cli_version: str | None = None,
) -> dict[str, Any]:
    record: dict[str, Any] = {
        "ts": time.time(),
        "event": f"{EVENT_PREFIX} {status}",
        "payload": payload,
        "level": level,
        "status": status,
        "component": "cli",
    }
    if correlation_id:
        record["correlationId"] = correlation_id
    if cli_version:
        record["cliVersion"] = cli_version
    duration = payload.get("durationMs")
    if duration is not None:
        record["durationMs"] = duration
    _validate_record(record)
    _validate_against_schema(record)
    return record


def _validate_record(record: dict[str, Any]) -> None:
    if not isinstance(record.get("event"), str) or not record["event"].strip():
        raise ValueError("Telemetry event must have non-empty string 'event'")
    if not isinstance(record.get("payload"), dict):
        raise ValueError("Telemetry payload must be a dict")
    level = record.get("level", "info")
    if level not in LEVELS:
        raise ValueError(f"Telemetry level '{level}' is not supported")
    if record.get("status") not in STATUSES:
        raise ValueError(f"Telemetry status '{record.get('status')}' is not supported")
    if "durationMs" in record and record["durationMs"] is not None:
        if not isinstance(record["durationMs"], (int, float)) or record["durationMs"] < 0:
            raise ValueError("Telemetry durationMs must be a non-negative number")
    record["ts"] = float(record.get("ts", time.time()))


def _telemetry_validator():  # pragma: no cover - trivial cache
    global _TELEMETRY_VALIDATOR
    if _TELEMETRY_VALIDATOR is not None:
        return _TELEMETRY_VALIDATOR
    schema_resource = resources.files("skyctl.resources") / "telemetry.schema.json"
    schema = json.loads(schema_resource.read_text(encoding="utf-8"))
    _TELEMETRY_VALIDATOR = jsonschema.Draft202012Validator(schema)
    return _TELEMETRY_VALIDATOR


def _validate_against_schema(record: dict[str, Any]) -> None:
    _telemetry_validator().validate(record)


class LocalTelemetrySink:
    """Appends records to ``telemetry.jsonl`` in the log directory."""

    def __init__(self, settings: RuntimeSettings) -> None:
        self._path = settings.telemetry_log

    def __call__(self, record: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with _FILE_LOCK, self._path.open("a", encoding="utf-8") as fh:
            fh.write(json.dumps(record, ensure_ascii=False) + "\n")


class HttpTelemetrySink:
    def __init__(self, url: str, session: requests.Session | None = None, timeout: float = 5.0) -> None:
        self._url = url
        self._session = session
        self._timeout = timeout

    def __call__(self, record: dict[str, Any]) -> None:
        if self._session is None:
            from skyctl.api.client import build_session

            self._session = build_session()
        response = self._session.post(self._url, json=record, timeout=self._timeout)
        response.raise_for_status()


def default_sink(settings: RuntimeSettings) -> Sink:
    if settings.telemetry_url:
        return HttpTelemetrySink(settings.telemetry_url)
    return LocalTelemetrySink(settings)


class MetricsDispatcher:
    """Sends lifecycle events without blocking the command being run."""

    def __init__(
        self,
        settings: RuntimeSettings,
        *,
        enabled: bool = True,
        sink: Sink | None = None,
        correlation_id: str | None = None,
        has_config: bool = False,
    ) -> None:
        self.settings = settings
        self.enabled = enabled
        self.has_config = has_config
        self.correlation_id = correlation_id or uuid.uuid4().hex
        self.abort = threading.Event()
        self._sink = sink or default_sink(settings)
        self._requests: set[futures.Future] = set()
        self._lock = threading.Lock()

    @property
    def requests(self) -> tuple[futures.Future, ...]:
        with self._lock:
            return tuple(self._requests)

    def send_command_event(self, status: str, properties: dict[str, Any]) -> futures.Future | None:
        if not self.enabled:
            return None
        payload = {key: value for key, value in properties.items() if value is not None}
        payload.setdefault("platform", platform.system().lower())
        payload.setdefault("hasConfig", self.has_config)
        try:
            record = build_record(
                status,
                payload,
                level="error" if status == "errored" else "info",
                correlation_id=self.correlation_id,
                cli_version=self.settings.cli_version,
            )
        except (ValueError, jsonschema.ValidationError) as exc:
            logger.debug("Dropping invalid telemetry event %s: %s", status, exc)
            return None
        return self._submit(record)

    def _submit(self, record: dict[str, Any]) -> futures.Future:
        future: futures.Future = futures.Future()
        future.set_running_or_notify_cancel()
        with self._lock:
            self._requests.add(future)
        future.add_done_callback(self._settle)
        thread = threading.Thread(
            target=self._deliver,
            args=(future, record),
            name="skyctl-telemetry",
            daemon=True,
        )
        thread.start()
        return future

    def _deliver(self, future: futures.Future, record: dict[str, Any]) -> None:
        if self.abort.is_set():
            future.set_result(False)
            return
        try:
            self._sink(record)
        except Exception as exc:  # noqa: BLE001
            logger.debug("Failed to send telemetry event %s: %s", record.get("event"), exc)
            future.set_result(False)
            return
        future.set_result(True)

    def _settle(self, future: futures.Future) -> None:
        with self._lock:
            self._requests.discard(future)

    def drain(self, timeout: float) -> bool:
        """Wait up to ``timeout`` seconds for in-flight sends, then signal abort.

        Returns ``True`` when every send settled in time. Sends still running are
        not interrupted; they are just no longer waited on.
        """

        pending = self.requests
        not_done: Iterable[futures.Future] = ()
        if pending:
            _, not_done = futures.wait(pending, timeout=timeout)
        self.abort.set()
        if not_done:
            logger.debug("Gave up waiting for %d telemetry request(s)", len(list(not_done)))
            return False
        return True


def get_metrics_dispatcher(
    settings: RuntimeSettings,
    *,
    send_metrics: bool | None = None,
    has_config: bool = False,
    sink: Sink | None = None,
) -> MetricsDispatcher:
    return MetricsDispatcher(
        settings,
        enabled=telemetry_enabled(settings, send_metrics),
        sink=sink,
        has_config=has_config,
    )


def iter_events(log_path: Path) -> Iterator[dict[str, Any]]:
    if not log_path.exists():
        return
    with log_path.open("r", encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                continue


def summarize(events: Iterable[dict[str, Any]]) -> dict[str, Any]:
    total = 0
    by_event: dict[str, int] = {}
    by_status: dict[str, int] = {}
    for evt in events:
        name = evt.get("event", "unknown")
        by_event[name] = by_event.get(name, 0) + 1
        status = evt.get("status", "unknown")
        by_status[status] = by_status.get(status, 0) + 1
        total += 1
    return {"total": total, "by_event": by_event, "by_status": by_status}


def clear(settings: RuntimeSettings) -> None:
    log_path = settings.telemetry_log
    if log_path.exists():
        log_path.unlink()
