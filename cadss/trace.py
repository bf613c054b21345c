"""Reader for text traces taken from stdin, a single file or a directory.

Each line holds one operation, introduced by a letter:

``A pc dest, src1, src2``  ALU operation
``X pc dest, src1, src2``  long-latency ALU operation
``B pc next_pc [src]``     branch
``L addr,size [src]``      load
``S addr,size [dest]``     store

Addresses are hexadecimal; sizes and registers are decimal. A directory
holds one file per processor, named ``p<N>.trace``.
"""

from __future__ import annotations

import re
import sys
import warnings
from pathlib import Path
from typing import IO, Any, Optional, Sequence, Union

from .types import Component, OpType, TraceOp

_TRACE_OPTIONS = "hdvc:p:o:n:i:b:t:s:m:"

_HEX = r"[+-]?(?:0[xX])?[0-9a-fA-F]+"
_INT = r"[+-]?[0-9]+"
_ALU_RE = re.compile(
    rf"\s*({_HEX})\s+({_INT})\s*,\s*({_INT})\s*,\s*({_INT})\s*"
)
_BRANCH_RE = re.compile(rf"\s*({_HEX})\s+({_HEX})(?:\s+({_INT}))?\s*")
_MEM_RE = re.compile(rf"\s*({_HEX})\s*,\s*({_INT})(?:\s+({_INT}))?\s*")
_MASK64 = (1 << 64) - 1

TraceSource = Union[None, str, Path, IO[str]]


def _hex(text: str) -> int:
    return int(text, 16) & _MASK64


def _option_value(argv: Sequence[str], spec: str, wanted: str) -> Optional[str]:
    """Return the last value given to option ``wanted`` in ``argv[1:]``."""
    takes_value = {
        letter for letter, nxt in zip(spec, spec[1:] + " ") if nxt == ":"
    }
    value: Optional[str] = None
    args = iter(argv[1:])
    for arg in args:
        if arg == "--":
            break
        if not arg.startswith("-") or arg == "-":
            continue
        letters = arg[1:]
        for pos, letter in enumerate(letters):
            if letter in takes_value:
                optarg = letters[pos + 1 :] or next(args, None)
                if letter == wanted and optarg is not None:
                    value = optarg
                break
    return value


def parse_op(line: str) -> TraceOp:
    """Parse one trace line into a :class:`TraceOp`.

    Raises ValueError for an unknown op letter or a malformed line.
    """
    if not line:
        raise ValueError("empty trace line")
    kind, rest = line[0], line[1:]

    if kind in ("A", "X"):
        match = _ALU_RE.fullmatch(rest)
        if match is None:
            raise ValueError(f"malformed {kind} trace line: {line!r}")
        pc, dest, src0, src1 = match.groups()
        return TraceOp(
            op=OpType.ALU if kind == "A" else OpType.ALU_LONG,
            pc_address=_hex(pc),
            dest_reg=int(dest),
            src_reg=[int(src0), int(src1)],
        )

    if kind == "B":
        match = _BRANCH_RE.fullmatch(rest)
        if match is None:
            raise ValueError(f"malformed branch trace line: {line!r}")
        pc, next_pc, reg = match.groups()
        return TraceOp(
            op=OpType.BRANCH,
            pc_address=_hex(pc),
            address=_hex(next_pc),
            dest_reg=-1,
            src_reg=[int(reg) if reg is not None else -1, -1],
        )

    if kind in ("L", "S"):
        match = _MEM_RE.fullmatch(rest)
        if match is None:
            raise ValueError(f"malformed memory trace line: {line!r}")
        addr, size, reg = match.groups()
        reg_value = int(reg) if reg is not None else -1
        if kind == "L":
            return TraceOp(
                op=OpType.MEM_LOAD,
                address=_hex(addr),
                size=int(size),
                dest_reg=-1,
                src_reg=[reg_value, -1],
            )
        return TraceOp(
            op=OpType.MEM_STORE,
            address=_hex(addr),
            size=int(size),
            dest_reg=reg_value,
            src_reg=[-1, -1],
        )

    raise ValueError(f"Invalid op type: {ord(kind):x}")


class TraceReader(Component):
    """Hands out trace operations, one stream per processor.

    ``source`` is None for stdin, an open text stream, a trace file, or a
    directory of per-processor traces. With stdin, a stream or a single
    file, only processor 0 receives operations.
    """

    def __init__(self, source: TraceSource = None, processor_count: int = 1) -> None:
        super().__init__()
        if processor_count < 1:
            raise ValueError(f"processor count must be positive: {processor_count}")
        self.processor_count = processor_count
        self.op_count = 0
        self._directory: Optional[Path] = None
        self._streams: list[Optional[IO[str]]] = [None] * processor_count
        self._owned: list[IO[str]] = []

        if source is None:
            print(
                "No trace file / directory specified, continuing using stdin",
                file=sys.stderr,
            )
            self._streams[0] = sys.stdin
        elif hasattr(source, "readline"):
            self._streams[0] = source  # type: ignore[assignment]
        else:
            path = Path(source)  # type: ignore[arg-type]
            if path.is_dir():
                self._directory = path
            else:
                stream = path.open("r", encoding="utf-8", errors="surrogateescape")
                self._owned.append(stream)
                self._streams[0] = stream

    @classmethod
    def from_args(
        cls, argv: Sequence[str], processor_count: int = 1
    ) -> "TraceReader":
        """Build a reader from engine arguments, using the ``-t`` option."""
        return cls(_option_value(argv, _TRACE_OPTIONS, "t"), processor_count)

    def _open_processor_trace(self, processor_num: int) -> Optional[IO[str]]:
        if self._directory is None:
            warnings.warn(
                f"Error opening processor specific trace for processor "
                f"{processor_num}: no trace directory"
            )
            return None
        path = self._directory / f"p{processor_num}.trace"
        try:
            stream = path.open("r", encoding="utf-8", errors="surrogateescape")
        except OSError as exc:
            warnings.warn(f"Error opening processor specific trace - {exc}")
            return None
        self._owned.append(stream)
        self._streams[processor_num] = stream
        return stream

    def get_next_op(self, processor_num: int) -> Optional[TraceOp]:
        """Return the next operation for a processor, or None if there is none."""
        if not 0 <= processor_num < self.processor_count:
            raise IndexError(f"processor {processor_num} out of range")
        stream = self._streams[processor_num]
        if stream is None:
            stream = self._open_processor_trace(processor_num)
            if stream is None:
                return None

        line = stream.readline()
        if not line or line[0] == "\0" or line[0].isspace():
            return None
        try:
            op = parse_op(line)
        except ValueError as exc:
            warnings.warn(f"{exc} on {self.op_count}")
            return None
        self.op_count += 1
        return op

    def tick(self) -> int:
        return 1

    def finish(self, out: Any) -> int:
        return 0

    def destroy(self) -> int:
        """Close every trace file this reader opened."""
        for stream in self._owned:
            stream.close()
        return 0

    def __enter__(self) -> "TraceReader":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.destroy()