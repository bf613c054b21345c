"""Cache coherence component with the MI snooping protocol."""

from __future__ import annotations

import sys
from enum import IntEnum
from typing import Any, Callable, Optional, Sequence

from .branch import _parse_options
from .stree import SplayTree
from .types import BusReqType, CacheAction, Component

MAX_PROCESSORS = 256

CacheCallback = Callable[[CacheAction, int, int], Any]


class CoherenceState(IntEnum):
    """Coherence state of one line in one processor's cache."""

    UNDEF = 0
    MODIFIED = 1
    INVALID = 2
    INVALID_MODIFIED = 3


class CoherenceScheme(IntEnum):
    """Coherence protocol family."""

    MI = 0
    MSI = 1
    MESI = 2
    MOESI = 3
    MESIF = 4


def cache_mi(
    interconnect: Any,
    is_read: bool,
    current_state: CoherenceState,
    addr: int,
    proc_num: int,
) -> tuple[CoherenceState, bool]:
    """Handle a processor access under MI; return (next state, permission)."""
    if current_state == CoherenceState.INVALID:
        interconnect.bus_req(BusReqType.BUSWR, addr, proc_num)
        return CoherenceState.INVALID_MODIFIED, False
    if current_state == CoherenceState.MODIFIED:
        return CoherenceState.MODIFIED, True
    if current_state == CoherenceState.INVALID_MODIFIED:
        print(
            f"IM state on {addr:x}, but request {int(bool(is_read))}",
            file=sys.stderr,
        )
        return CoherenceState.INVALID_MODIFIED, False
    print(
        f"State {int(current_state)} not supported, found on {addr:x}",
        file=sys.stderr,
    )
    return CoherenceState.INVALID, False


def snoop_mi(
    interconnect: Any,
    req_type: BusReqType,
    current_state: CoherenceState,
    addr: int,
    proc_num: int,
) -> tuple[CoherenceState, CacheAction]:
    """Handle a snooped bus request under MI; return (next state, action)."""
    if current_state == CoherenceState.INVALID:
        action = (
            CacheAction.FLUSH_COMPLETE
            if req_type == BusReqType.DATA
            else CacheAction.NO_ACTION
        )
        return CoherenceState.INVALID, action
    if current_state == CoherenceState.MODIFIED:
        interconnect.bus_req(BusReqType.DATA, addr, proc_num)
        return CoherenceState.INVALID, CacheAction.INVALIDATE
    if current_state == CoherenceState.INVALID_MODIFIED:
        if req_type in (BusReqType.DATA, BusReqType.SHARED):
            return CoherenceState.MODIFIED, CacheAction.DATA_RECV
        return CoherenceState.INVALID_MODIFIED, CacheAction.NO_ACTION
    print(
        f"State {int(current_state)} not supported, found on {addr:x}",
        file=sys.stderr,
    )
    return CoherenceState.INVALID, CacheAction.NO_ACTION


class Coherence(Component):
    """Tracks per-processor line states and drives the protocol.

    Option ``-s <n>`` selects the scheme; only MI is available.
    """

    def __init__(
        self,
        args: Optional[Sequence[str]] = None,
        interconnect: Any = None,
        processor_count: int = 1,
    ) -> None:
        super().__init__()
        if interconnect is None:
            raise ValueError("an interconnect component is required")
        options = _parse_options(args or [], "s:")
        scheme_text = options.get("s")
        try:
            self.scheme = (
                CoherenceScheme(int(scheme_text))
                if scheme_text is not None
                else CoherenceScheme.MI
            )
        except ValueError as exc:
            raise ValueError(f"Undefined coherence scheme - {scheme_text}") from exc
        if not 1 <= processor_count <= MAX_PROCESSORS:
            raise ValueError(
                "processorCount outside valid range - "
                f"{processor_count} specified"
            )
        self.processor_count = processor_count
        self.interconnect = interconnect
        self._states = [SplayTree(update_existing=True) for _ in range(processor_count)]
        self._cache_callback: Optional[CacheCallback] = None
        interconnect.register_coher(self)

    def register_cache_interface(self, callback: CacheCallback) -> None:
        """Set the function told about data arrivals and invalidations."""
        self._cache_callback = callback

    def _check_processor(self, processor_num: int) -> None:
        if not 0 <= processor_num < self.processor_count:
            raise IndexError(f"processor {processor_num} out of range")

    def _require_mi(self) -> None:
        if self.scheme != CoherenceScheme.MI:
            raise ValueError(f"coherence scheme {self.scheme.name} is not supported")

    def get_state(self, addr: int, processor_num: int) -> CoherenceState:
        """State of ``addr`` in a processor's cache; absent lines are INVALID."""
        self._check_processor(processor_num)
        record = self._states[processor_num].find(addr)
        if record is None or record == CoherenceState.UNDEF:
            return CoherenceState.INVALID
        return CoherenceState(record)

    def set_state(self, addr: int, processor_num: int, state: CoherenceState) -> None:
        """Record the state of ``addr`` in a processor's cache."""
        self._check_processor(processor_num)
        self._states[processor_num].insert(addr, CoherenceState(state))

    def bus_req(self, req_type: BusReqType, addr: int, processor_num: int) -> int:
        """Snoop a bus request on behalf of one processor's cache."""
        self._check_processor(processor_num)
        current = self.get_state(addr, processor_num)
        self._require_mi()
        next_state, action = snoop_mi(
            self.interconnect, BusReqType(req_type), current, addr, processor_num
        )

        if action not in (
            CacheAction.DATA_RECV,
            CacheAction.INVALIDATE,
            CacheAction.NO_ACTION,
        ):
            raise RuntimeError(f"unexpected cache action {action.name}")
        if self._cache_callback is None:
            raise RuntimeError("no cache interface registered")
        self._cache_callback(action, processor_num, addr)

        # INVALID is implicit and is not stored.
        if next_state == CoherenceState.INVALID:
            if current != CoherenceState.INVALID:
                self._states[processor_num].remove(addr)
        else:
            self.set_state(addr, processor_num, next_state)
        return 0

    def perm_req(self, is_read: bool, addr: int, processor_num: int) -> bool:
        """Ask for access to ``addr``; return whether it is available now."""
        self._check_processor(processor_num)
        current = self.get_state(addr, processor_num)
        self._require_mi()
        next_state, perm_avail = cache_mi(
            self.interconnect, is_read, current, addr, processor_num
        )
        self.set_state(addr, processor_num, next_state)
        return perm_avail

    def invl_req(self, addr: int, processor_num: int) -> bool:
        """Evict ``addr``; return whether a flush was placed on the bus."""
        self._check_processor(processor_num)
        current = self.get_state(addr, processor_num)
        self._require_mi()
        flush = False
        if current != CoherenceState.INVALID:
            self.interconnect.bus_req(BusReqType.DATA, addr, processor_num)
            flush = True
        self._states[processor_num].remove(addr)
        return flush

    def tick(self) -> int:
        return self.interconnect.tick()

    def finish(self, out: Any) -> int:
        return self.interconnect.finish(out)

    def destroy(self) -> int:
        return self.interconnect.destroy()