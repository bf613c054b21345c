"""Cache that forwards every access to coherence and waits for its answer."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from .branch import _parse_options
from .types import CacheAction, Component, OpType, TraceOp

MemCallback = Callable[[int, int], Any]


@dataclass
class _Request:
    tag: int
    addr: int
    processor_num: int
    callback: MemCallback


class SimpleCache(Component):
    """Cache without storage of its own: hits are whatever coherence grants.

    Option ``-b <bits>`` sets the block size to ``2**bits`` bytes. Requests
    are assumed not to cross a block.
    """

    def __init__(
        self,
        args: Optional[Sequence[str]] = None,
        coherence: Any = None,
        processor_count: int = 1,
        verbose: bool = False,
    ) -> None:
        super().__init__()
        if coherence is None:
            raise ValueError("a coherence component is required")
        options = _parse_options(args or [], "E:s:b:i:R:")
        self.block_size = 1 << int(options["b"]) if "b" in options else 1
        self.processor_count = processor_count
        self.verbose = verbose
        self.coherence = coherence
        self._ready: deque[_Request] = deque()
        self._pending: list[_Request] = []
        coherence.register_cache_interface(self.coher_callback)

    def coher_callback(self, action: int, processor_num: int, addr: int) -> None:
        """Move the request waiting on ``addr`` to ready when data arrives."""
        if not self._pending:
            raise RuntimeError("coherence answered with no request pending")
        if processor_num >= self.processor_count:
            raise IndexError(f"processor {processor_num} out of range")
        # Invalidations are not modelled.
        if action != CacheAction.DATA_RECV:
            return

        for index, request in enumerate(self._pending):
            if request.processor_num == processor_num and request.addr == addr:
                del self._pending[index]
                self._ready.appendleft(request)
                return

        if self.verbose:
            print(
                "\t".join(
                    f"W: ({r.addr:x} {r.processor_num})" for r in self._pending
                )
            )
        raise RuntimeError(
            f"no pending request for address {addr:x} on processor {processor_num}"
        )

    def memory_request(
        self, op: TraceOp, processor_num: int, tag: int, callback: MemCallback
    ) -> None:
        """Start an access; ``callback(proc, tag)`` runs on the tick it completes."""
        if op is None:
            raise ValueError("a memory operation is required")
        if callback is None:
            raise ValueError("a completion callback is required")

        addr = op.mem_address & ~(self.block_size - 1)
        granted = self.coherence.perm_req(op.op == OpType.MEM_LOAD, addr, processor_num)
        request = _Request(tag, addr, processor_num, callback)
        if granted:
            self._ready.appendleft(request)
        else:
            self._pending.insert(0, request)

    def tick(self) -> int:
        self.coherence.tick()
        ready, self._ready = self._ready, deque()
        for request in ready:
            request.callback(request.processor_num, request.tag)
        return 1

    def finish(self, out: Any) -> int:
        return 0

    def destroy(self) -> int:
        self._ready.clear()
        self._pending.clear()
        return 0