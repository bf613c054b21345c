"""Shared data types and the common component interface of the simulator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

READ_PERM = 0
WRITE_PERM = 1


class OpType(IntEnum):
    """Kind of operation read from a trace."""

    NONE = 0
    MEM_LOAD = 1
    MEM_STORE = 2
    BRANCH = 3
    ALU = 4
    ALU_LONG = 5
    END = 6


class BusReqType(IntEnum):
    """Kind of request placed on the interconnect."""

    NO_REQ = 0
    BUSRD = 1
    BUSWR = 2
    DATA = 3
    SHARED = 4
    MEMORY = 5


class CacheAction(IntEnum):
    """Action the coherence component asks the cache to take."""

    NO_ACTION = 0
    DATA_RECV = 1
    INVALIDATE = 2
    FLUSH_COMPLETE = 3


class BranchModel(IntEnum):
    """Branch predictor model."""

    DEFAULT = 0
    GSHARE = 1
    GSELECT = 2
    YEH_PATT = 3


class TraceType(IntEnum):
    """Origin of a trace."""

    ASCII = 0
    STDIN = 1
    PIN = 2
    CONTECH = 3


@dataclass
class TraceOp:
    """One operation from a trace.

    ``address`` holds the memory address of a load or store, or the next
    PC of a branch; ``mem_address`` and ``next_pc_address`` both name it.
    """

    op: OpType = OpType.NONE
    pc_address: int = 0
    address: int = 0
    size: int = 0
    dest_reg: int = 0
    src_reg: list[int] = field(default_factory=lambda: [0, 0])

    def __post_init__(self) -> None:
        self.op = OpType(self.op)
        self.src_reg = list(self.src_reg)
        if len(self.src_reg) != 2:
            raise ValueError(
                f"src_reg must hold exactly two registers, got {len(self.src_reg)}"
            )

    @property
    def mem_address(self) -> int:
        return self.address

    @mem_address.setter
    def mem_address(self, value: int) -> None:
        self.address = value

    @property
    def next_pc_address(self) -> int:
        return self.address

    @next_pc_address.setter
    def next_pc_address(self, value: int) -> None:
        self.address = value


@dataclass
class DebugEnv:
    """Per-component debugging flags set by the engine."""

    watched_comp: bool = False
    notify_state: bool = False
    extern_break: bool = False


class Component:
    """Interface every simulated component provides."""

    def __init__(self) -> None:
        self.dbg_env = DebugEnv()

    def tick(self) -> int:
        """Advance one cycle; a non-zero result means progress was made."""
        return 1

    def finish(self, out: Any) -> int:
        """Report results to ``out``; non-zero signals a failure."""
        return 0

    def destroy(self) -> int:
        """Release resources; non-zero signals a failure."""
        return 0