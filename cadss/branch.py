"""Branch predictor component that always predicts the actual target."""

from __future__ import annotations

import warnings
from typing import Any, Optional, Sequence

from .types import Component, TraceOp

_OPTION_SPEC = "p:s:b:g:"


def _parse_options(argv: Sequence[str], spec: str) -> dict[str, str]:
    """Collect short options from ``argv[1:]``, warning on bad ones."""
    takes_value = {
        letter for letter, nxt in zip(spec, spec[1:] + " ") if nxt == ":"
    }
    known = set(spec) - {":"}
    options: dict[str, str] = {}
    args = list(argv[1:])
    while args:
        arg = args.pop(0)
        if arg == "--":
            break
        if not arg.startswith("-") or arg == "-":
            continue
        letters = arg[1:]
        while letters:
            letter, letters = letters[0], letters[1:]
            if letter not in known:
                warnings.warn(f"invalid option -- '{letter}'")
                continue
            if letter in takes_value:
                if letters:
                    options[letter] = letters
                elif args:
                    options[letter] = args.pop(0)
                else:
                    warnings.warn(f"option requires an argument -- '{letter}'")
                break
            options[letter] = ""
    return options


class BranchPredictor(Component):
    """Predictor that returns the real next PC, so it is never wrong.

    Accepted options: ``-p`` processor count, ``-s`` predictor size,
    ``-b`` history register size, ``-g`` predictor model.
    """

    def __init__(self, args: Optional[Sequence[str]] = None) -> None:
        super().__init__()
        self.options = _parse_options(args or [], _OPTION_SPEC)

    def branch_request(self, op: TraceOp, processor_num: int) -> int:
        """Return the predicted address of the instruction after ``op``."""
        if op is None:
            raise ValueError("a branch operation is required")
        return op.next_pc_address

    def tick(self) -> int:
        return 1

    def finish(self, out: Any) -> int:
        return 0

    def destroy(self) -> int:
        return 0