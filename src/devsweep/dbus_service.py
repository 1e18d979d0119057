"""D-Bus service exposing the backend to a separate UI process.

D-Bus methods use PascalCase per D-Bus convention, and type signatures
like "as" and "(ss)" are D-Bus protocol types, not Python syntax.
Every method replies with a JSON string; failures are reported as
``{"error": ..., "retryable": ...}`` rather than D-Bus errors.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable

from dbus_next.aio import MessageBus
from dbus_next.service import ServiceInterface, method, signal
from dbus_next import BusType

from devsweep.core.backend import Backend
from devsweep.core.quarantine import QuarantineBusyError, QuarantineError

log = logging.getLogger(__name__)

_BUS_NAME = "io.github.devsweep"
_OBJECT_PATH = "/io/github/devsweep"
_INTERFACE = "io.github.devsweep.Manager"


def _guarded(call: Callable[[], Any]) -> str:
    """Run *call* and encode its result, or the error it raised, as JSON."""
    try:
        return json.dumps(call())
    except QuarantineBusyError as e:
        return json.dumps({"error": str(e), "retryable": True})
    except (QuarantineError, ValueError, KeyError) as e:
        return json.dumps({"error": str(e), "retryable": False})


# noinspection PyPep8Naming
class DevsweepDBusService(ServiceInterface):
    """D-Bus service interface for devsweep."""

    def __init__(self, backend: Backend | None = None) -> None:
        super().__init__(_INTERFACE)
        self._backend = backend or Backend()

    @method()
    def Scan(self, use_cache: "b") -> "s":  # type: ignore[override]
        """Scan all categories, returning a list of category results as JSON."""

        def progress(category: str, status: str) -> None:
            self.ScanProgress(category, status)

        results = self._backend.scan(use_cache=use_cache, on_progress=progress)
        return json.dumps([c.to_dict() for c in results])

    @method()
    def Cleanup(self, item_paths: "as", use_quarantine: "b") -> "s":  # type: ignore[override]
        """Clean items of the last scan, selected by path."""
        items = self._backend.select_items(paths=list(item_paths))
        if not items:
            return json.dumps({"error": "No matching items in the last scan", "retryable": False})
        return _guarded(lambda: self._backend.cleanup(items, use_quarantine=use_quarantine).to_dict())

    @method()
    def Restore(self, record_id: "s") -> "s":  # type: ignore[override]
        return _guarded(lambda: [o.to_dict() for o in self._backend.restore(record_id)])

    @method()
    def DeletePermanent(self, record_id: "s", item_index: "u") -> "s":  # type: ignore[override]
        return _guarded(lambda: self._backend.delete_permanent(record_id, item_index).to_dict())

    @method()
    def GetTtl(self, category: "s") -> "s":  # type: ignore[override]
        return json.dumps({"category": category, "ttl": self._backend.get_ttl(category)})

    @method()
    def SetTtl(self, category: "s", seconds: "t") -> "s":  # type: ignore[override]
        def apply() -> dict:
            self._backend.set_ttl(category, seconds)
            return {"category": category, "ttl": seconds}

        return _guarded(apply)

    @method()
    def ResetTtls(self) -> "s":  # type: ignore[override]
        self._backend.reset_to_defaults()
        return json.dumps(self._backend.all_ttls())

    @method()
    def ListRecords(self) -> "s":  # type: ignore[override]
        """Cleanup history, newest first."""
        return json.dumps([r.to_dict() for r in self._backend.records()])

    @method()
    def ListCustomPaths(self) -> "s":  # type: ignore[override]
        return json.dumps([e.to_dict() for e in self._backend.custom_paths()])

    @method()
    def AddCustomPath(self, path: "s", label: "s") -> "s":  # type: ignore[override]
        return _guarded(lambda: self._backend.add_custom_path(path, label).to_dict())

    @method()
    def RemoveCustomPath(self, index: "u") -> "s":  # type: ignore[override]
        return _guarded(lambda: self._backend.remove_custom_path(index).to_dict())

    @method()
    def ToggleCustomPath(self, index: "u") -> "s":  # type: ignore[override]
        return _guarded(lambda: self._backend.toggle_custom_path(index).to_dict())

    @signal()
    def ScanProgress(self, category: str, status: str) -> "(ss)":  # type: ignore[override]
        return [category, status]


async def run_service() -> None:
    """Start the D-Bus service."""
    bus = await MessageBus(bus_type=BusType.SESSION).connect()
    service = DevsweepDBusService()
    bus.export(_OBJECT_PATH, service)
    await bus.request_name(_BUS_NAME)
    log.info("D-Bus service started on %s", _BUS_NAME)
    await bus.wait_for_disconnect()


def start_service() -> None:
    """Entry point to start the D-Bus service."""
    asyncio.run(run_service())
