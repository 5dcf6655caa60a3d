"""Exception reporting backend: breadcrumbs plus captured crash reports."""

from __future__ import annotations

import json
import platform
import time
import traceback
from dataclasses import dataclass, field
from typing import Any

from skyctl.settings import RuntimeSettings
from skyctl.utils.logger import logger

MAX_BREADCRUMBS = 50


@dataclass
class Breadcrumb:
    message: str
    category: str = "command"
    ts: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        return {"message": self.message, "category": self.category, "ts": self.ts}


class ExceptionReporter:
    """Collects reports during a run and flushes them to disk on ``close``."""

    def __init__(self, settings: RuntimeSettings, *, enabled: bool | None = None) -> None:
        self._settings = settings
        self.enabled = settings.report_errors if enabled is None else enabled
        self._breadcrumbs: list[Breadcrumb] = []
        self._pending: list[dict[str, Any]] = []
        self._active = False

    @property
    def pending(self) -> tuple[dict[str, Any], ...]:
        return tuple(self._pending)

    @property
    def breadcrumbs(self) -> tuple[Breadcrumb, ...]:
        return tuple(self._breadcrumbs)

    def setup(self) -> None:
        self._active = self.enabled

    def add_breadcrumb(self, message: str, category: str = "command") -> None:
        self._breadcrumbs.append(Breadcrumb(message=message, category=category))
        del self._breadcrumbs[:-MAX_BREADCRUMBS]

    def capture_exception(self, error: BaseException) -> None:
        if not self._active:
            return
        self._pending.append(
            {
                "ts": time.time(),
                "type": type(error).__name__,
                "message": str(error),
                "traceback": "".join(traceback.format_exception(type(error), error, error.__traceback__)),
                "breadcrumbs": [crumb.to_dict() for crumb in self._breadcrumbs],
                "cliVersion": self._settings.cli_version,
                "platform": platform.system().lower(),
            }
        )

    def close(self) -> None:
        self._active = False
        if not self._pending:
            return
        path = self._settings.error_report_log
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as fh:
            for report in self._pending:
                fh.write(json.dumps(report, ensure_ascii=False) + "\n")
        logger.debug("Wrote %d error report(s) to %s", len(self._pending), path)
        self._pending.clear()
