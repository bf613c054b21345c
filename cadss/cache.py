"""Placeholder cache model with one outstanding request and fixed latency."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .types import CacheAction, Component, TraceOp

MemCallback = Callable[[int, int], Any]


@dataclass
class _PendingRequest:
    tag: int
    proc_num: int
    callback: MemCallback


class Cache(Component):
    """Cache that asks coherence for every access and completes when data arrives.

    Only one memory operation is outstanding: a new request completes the
    previous one at once.
    """

    def __init__(self, args: Optional[Sequence[str]] = None, coherence: Any = None) -> None:
        super().__init__()
        if coherence is None:
            raise ValueError("a coherence component is required")
        self.args = list(args) if args is not None else []
        self.coherence = coherence
        self.count_down = 0
        self._pending: Optional[_PendingRequest] = None
        coherence.register_cache_interface(self.coher_callback)

    def coher_callback(self, action: int, proc_num: int, addr: int) -> None:
        """React to the coherence component's answer."""
        if action in (CacheAction.NO_ACTION, CacheAction.DATA_RECV):
            self.count_down = 1

    def _complete_pending(self) -> None:
        if self._pending is None:
            raise RuntimeError("no memory request is pending")
        self._pending.callback(self._pending.proc_num, self._pending.tag)

    def memory_request(
        self, op: TraceOp, processor_num: int, tag: int, callback: MemCallback
    ) -> None:
        """Start a memory operation; ``callback(proc, tag)`` reports completion."""
        if op is None:
            raise ValueError("a memory operation is required")
        if callback is None:
            raise ValueError("a completion callback is required")

        if self.count_down != 0:
            self._complete_pending()

        self._pending = _PendingRequest(tag, processor_num, callback)
        self.count_down = 2
        self.coherence.perm_req(False, op.mem_address, processor_num)

    def tick(self) -> int:
        self.coherence.tick()
        if self.count_down == 1:
            self._complete_pending()
        return 1

    def finish(self, out: Any) -> int:
        return 0

    def destroy(self) -> int:
        return 0