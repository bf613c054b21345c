"""DRAM model that answers one request at a time after a fixed delay."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .types import Component

# Same as the bus time.
DRAM_FETCH_TICKS = 90

MemoryCallback = Callable[[int, int], Any]


@dataclass
class MemoryRequest:
    """An outstanding DRAM request."""

    proc_num: int
    addr: int
    callback: MemoryCallback
    squelch: bool = False


class Memory(Component):
    """Memory that serves a single request, unless a cache answers first."""

    def __init__(self, args: Optional[Sequence[str]] = None) -> None:
        super().__init__()
        self.args = list(args) if args is not None else []
        self.pending_request: Optional[MemoryRequest] = None
        self.count_down = 0
        self._interconnect: Any = None

    def register_interconnect(self, interconnect: Any) -> None:
        """Attach the interconnect used to detect cache-to-cache transfers."""
        if interconnect is None:
            raise ValueError("an interconnect is required")
        self._interconnect = interconnect

    def bus_req(self, addr: int, proc_num: int, callback: MemoryCallback) -> int:
        """Start a fetch and return the number of ticks it will take."""
        if self.pending_request is not None:
            raise RuntimeError("memory already has a pending request")
        self.pending_request = MemoryRequest(proc_num, addr, callback)
        self.count_down = DRAM_FETCH_TICKS
        return self.count_down

    def tick(self) -> int:
        """Advance one cycle and return the ticks left on the request."""
        request = self.pending_request
        if self.count_down > 0:
            if request is None:
                raise RuntimeError("memory is counting down without a request")
            if self._interconnect is None:
                raise RuntimeError("no interconnect registered with memory")
            # A cache supplied the data, so the DRAM response is dropped.
            if self._interconnect.bus_req_cache_transfer(
                request.addr, request.proc_num
            ):
                request.squelch = True
                self.count_down = 0
            else:
                self.count_down -= 1

        if request is not None and self.count_down == 0:
            if not request.squelch:
                request.callback(request.proc_num, request.addr)
            self.pending_request = None

        return self.count_down

    def finish(self, out: Any) -> int:
        return 0

    def destroy(self) -> int:
        self.pending_request = None
        return 0