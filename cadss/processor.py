"""In-order processor model that blocks on memory operations and mispredictions."""

from __future__ import annotations

import sys
from typing import Any, Optional, Sequence

from .branch import _parse_options
from .types import Component, OpType

STALL_TIME = 100000


def make_tag(proc_num: int, base_tag: int) -> int:
    """Combine a processor number and a per-processor counter into a tag."""
    return proc_num | (base_tag << 8)


class Processor(Component):
    """Fetches one operation per tick per core until it must wait.

    Options ``-f -d -m -j -k -c`` (fetch rate, queue multipliers, ALU and
    CDB counts) are accepted and recorded.
    """

    def __init__(
        self,
        args: Optional[Sequence[str]] = None,
        trace: Any = None,
        cache: Any = None,
        branch: Any = None,
        processor_count: int = 1,
        out: Any = None,
    ) -> None:
        super().__init__()
        if trace is None or cache is None or branch is None:
            raise ValueError("trace, cache and branch components are required")
        if processor_count < 1:
            raise ValueError(f"processor count must be positive: {processor_count}")
        self.options = _parse_options(args or [], "f:d:m:j:k:c:")
        self.trace = trace
        self.cache = cache
        self.branch = branch
        self.processor_count = processor_count
        self.out = out
        self.pending_mem = [False] * processor_count
        self.pending_branch = [0] * processor_count
        self.mem_op_tag = [0] * processor_count
        self.tick_count = 0
        self.stall_count = -1

    def _print(self, text: str) -> None:
        print(text, file=self.out if self.out is not None else sys.stdout)

    def mem_op_callback(self, proc_num: int, tag: int) -> None:
        """A memory operation finished; release the core if it was the one waited on."""
        base_tag = tag >> 8
        if base_tag == self.mem_op_tag[proc_num]:
            self.mem_op_tag[proc_num] += 1
            self.pending_mem[proc_num] = False
            self.stall_count = self.tick_count + STALL_TIME
        else:
            self._print(f"memopTag: {self.mem_op_tag[proc_num]} != tag {tag}")

    def tick(self) -> int:
        """Advance every core by one cycle; return 1 while any made progress."""
        self.branch.tick()
        self.cache.tick()
        self.tick_count += 1

        if self.tick_count == self.stall_count:
            self._print(
                f"Processor may be stalled.  Now at tick - {self.tick_count}, "
                f"last op at {self.tick_count - STALL_TIME}"
            )
            for proc, waiting in enumerate(self.pending_mem):
                if waiting:
                    self._print(f"Processor {proc} is waiting on memory")

        progress = 0
        for proc in range(self.processor_count):
            if self.pending_mem[proc]:
                progress = 1
                continue
            if self.pending_branch[proc] > 0:
                self.pending_branch[proc] -= 1
                progress = 1
                continue

            op = self.trace.get_next_op(proc)
            if op is None:
                continue
            progress = 1

            if op.op in (OpType.MEM_LOAD, OpType.MEM_STORE):
                self.pending_mem[proc] = True
                self.cache.memory_request(
                    op, proc, make_tag(proc, self.mem_op_tag[proc]), self.mem_op_callback
                )
            elif op.op == OpType.BRANCH:
                predicted = self.branch.branch_request(op, proc)
                self.pending_branch[proc] = 0 if predicted == op.next_pc_address else 1

        return progress

    def finish(self, out: Any) -> int:
        """Report the tick count to ``out``; return 1 if a part failed."""
        c = self.cache.finish(out)
        b = self.branch.finish(out)
        stream = out if out is not None else sys.stdout
        stream.write(f"Ticks - {self.tick_count}\n")
        return 1 if (b or c) else 0

    def destroy(self) -> int:
        c = self.cache.destroy()
        b = self.branch.destroy()
        return 1 if (b or c) else 0