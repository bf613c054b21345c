"""Snooping bus that serialises requests and arbitrates round robin."""

from __future__ import annotations

import signal
from collections import deque
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Optional, Sequence

from .types import BusReqType, Component

CACHE_DELAY = 10
CACHE_TRANSFER = 10


class BusReqState(IntEnum):
    """Progress of a request on the bus."""

    NONE = 0
    QUEUED = 1
    TRANSFERING_CACHE = 2
    TRANSFERING_MEMORY = 3
    WAITING_CACHE = 4
    WAITING_MEMORY = 5

    @property
    def label(self) -> str:
        return _STATE_LABELS[self]


_STATE_LABELS = {
    BusReqState.NONE: "None",
    BusReqState.QUEUED: "Queued",
    BusReqState.TRANSFERING_CACHE: "Cache-to-Cache Transfer",
    BusReqState.TRANSFERING_MEMORY: "Memory Transfer",
    BusReqState.WAITING_CACHE: "Waiting for Cache",
    BusReqState.WAITING_MEMORY: "Waiting for Memory",
}

_TYPE_LABELS = {
    BusReqType.NO_REQ: "None",
    BusReqType.BUSRD: "BusRd",
    BusReqType.BUSWR: "BusRdX",
    BusReqType.DATA: "Data",
    BusReqType.SHARED: "Shared",
    BusReqType.MEMORY: "Memory",
}


@dataclass
class BusRequest:
    """A request travelling over the bus."""

    brt: BusReqType
    addr: int
    proc_num: int
    current_state: BusReqState = BusReqState.QUEUED
    shared: bool = False
    data: bool = False
    data_avail: bool = False


class Interconnect(Component):
    """Bus between the caches' coherence logic and memory."""

    def __init__(
        self,
        args: Optional[Sequence[str]] = None,
        memory: Any = None,
        processor_count: int = 1,
    ) -> None:
        super().__init__()
        if memory is None:
            raise ValueError("a memory component is required")
        if processor_count < 1:
            raise ValueError(f"processor count must be positive: {processor_count}")
        self.args = list(args) if args is not None else []
        self.processor_count = processor_count
        self.memory = memory
        self.coherence: Any = None
        self.pending_request: Optional[BusRequest] = None
        self.count_down = 0
        self.last_proc = 0
        self._queues: list[deque[BusRequest]] = [
            deque() for _ in range(processor_count)
        ]
        memory.register_interconnect(self)

    def register_coher(self, coher: Any) -> None:
        """Attach the coherence component that snoops the bus."""
        self.coherence = coher

    def _require_coherence(self) -> Any:
        if self.coherence is None:
            raise RuntimeError("no coherence component registered")
        return self.coherence

    def mem_req_callback(self, proc_num: int, addr: int) -> None:
        """Memory has the data for the pending request."""
        request = self.pending_request
        if request is None:
            return
        if addr == request.addr and proc_num == request.proc_num:
            request.data_avail = True

    def bus_req(self, brt: BusReqType, addr: int, proc_num: int) -> None:
        """Place a request on the bus, or queue it if the bus is busy."""
        brt = BusReqType(brt)
        request = self.pending_request
        if request is None:
            if brt == BusReqType.SHARED:
                raise ValueError("a shared indication needs a pending request")
            self.pending_request = BusRequest(
                brt, addr, proc_num, BusReqState.WAITING_CACHE
            )
            self.count_down = CACHE_DELAY
            return

        if brt == BusReqType.SHARED and request.addr == addr:
            request.shared = True
            return

        if brt == BusReqType.DATA and request.addr == addr:
            if request.current_state != BusReqState.WAITING_MEMORY:
                raise RuntimeError(
                    "data supplied while the request is "
                    f"{request.current_state.label}"
                )
            request.data = True
            request.current_state = BusReqState.TRANSFERING_CACHE
            self.count_down = CACHE_TRANSFER
            return

        if brt == BusReqType.SHARED:
            raise ValueError("a shared indication must match the pending address")
        self._queues[proc_num].append(BusRequest(brt, addr, proc_num))

    def bus_req_cache_transfer(self, addr: int, proc_num: int) -> bool:
        """Whether the pending request is being served by another cache."""
        request = self.pending_request
        if request is None:
            raise RuntimeError("no request is pending on the bus")
        if addr == request.addr and proc_num == request.proc_num:
            return request.current_state == BusReqState.TRANSFERING_CACHE
        return False

    def queue_size(self, proc_num: int) -> int:
        """Number of requests waiting for a processor."""
        return len(self._queues[proc_num])

    def state_text(self) -> str:
        """Describe the pending request and the queues; empty if idle."""
        request = self.pending_request
        if request is None:
            return ""
        lines = [
            f"--- Interconnect Debug State (Processors: {self.processor_count}) ---",
            "       Current Request: ",
            f"             Processor: {request.proc_num}",
            f"               Address: 0x{request.addr:016x}",
            f"                  Type: {_TYPE_LABELS[request.brt]}",
            f"                 State: {request.current_state.label}",
            f"         Shared / Data: {'Shared' if request.shared else 'Data'}",
            f"             Countdown: {self.count_down}",
            "    Request Queue Size: ",
        ]
        lines.extend(
            f"       - Processor[{proc:02d}]: {len(queue)}"
            for proc, queue in enumerate(self._queues)
        )
        return "\n".join(lines) + "\n"

    def notify_state(self) -> None:
        """Report a state change to the debugger, if it asked for one."""
        if self.pending_request is None:
            return
        env = self.dbg_env
        if env.extern_break:
            print(self.state_text(), end="")
            signal.raise_signal(signal.SIGTRAP)
            return
        if env.watched_comp and env.notify_state:
            env.notify_state = False
            print(self.state_text(), end="")

    def _finish_request(self, brt: BusReqType) -> None:
        request = self.pending_request
        assert request is not None
        self._require_coherence().bus_req(brt, request.addr, request.proc_num)
        self.notify_state()
        self.pending_request = None

    def tick(self) -> int:
        self.memory.tick()

        if self.dbg_env.watched_comp and not self.dbg_env.notify_state:
            print(self.state_text(), end="")

        if self.count_down > 0:
            request = self.pending_request
            if request is None:
                raise RuntimeError("bus is counting down without a request")
            self.count_down -= 1

            # Memory responded before the count-down elapsed.
            if request.data_avail:
                request.current_state = BusReqState.TRANSFERING_MEMORY
                self.count_down = 0

            if self.count_down == 0:
                if request.current_state == BusReqState.WAITING_CACHE:
                    self.count_down = self.memory.bus_req(
                        request.addr, request.proc_num, self.mem_req_callback
                    )
                    request.current_state = BusReqState.WAITING_MEMORY
                    if request.brt != BusReqType.DATA:
                        coherence = self._require_coherence()
                        for proc in range(self.processor_count):
                            if proc != request.proc_num:
                                coherence.bus_req(request.brt, request.addr, proc)
                        if request.data:
                            request.brt = BusReqType.DATA
                elif request.current_state == BusReqState.TRANSFERING_MEMORY:
                    self._finish_request(
                        BusReqType.SHARED if request.shared else BusReqType.DATA
                    )
                elif request.current_state == BusReqState.TRANSFERING_CACHE:
                    self._finish_request(
                        BusReqType.SHARED if request.shared else request.brt
                    )
        elif self.count_down == 0:
            for offset in range(self.processor_count):
                pos = (offset + self.last_proc) % self.processor_count
                queue = self._queues[pos]
                if queue:
                    request = queue.popleft()
                    request.current_state = BusReqState.WAITING_CACHE
                    self.pending_request = request
                    self.count_down = CACHE_DELAY
                    self.last_proc = (pos + 1) % self.processor_count
                    break

        return 0

    def finish(self, out: Any) -> int:
        self.memory.finish(out)
        return 0

    def destroy(self) -> int:
        self.memory.destroy()
        return 0