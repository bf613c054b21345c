"""Interactive debug REPL that steps the simulation and watches components."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass
from enum import IntEnum, IntFlag
from pathlib import Path
from typing import Any, Callable, Optional

from .types import DebugEnv

# fgets with a buffer of this size keeps one byte less for the text.
MAX_DBG_LINE_BUF_SIZE = 31

_INT_PREFIX = re.compile(r"\s*([+-]?\d+)")


def _atoi(text: str) -> int:
    """Leading integer of ``text`` after whitespace, or 0 if there is none."""
    match = _INT_PREFIX.match(text)
    return int(match.group(1)) if match else 0


class DebugCommand(IntEnum):
    """Command typed at the debug prompt."""

    ERR = 0
    WAT = 1
    IGN = 2
    NXT = 3
    CON = 4
    EXT = 5
    HLT = 6
    HLP = 7
    LST = 8


class WatchFlag(IntFlag):
    """One bit for each component that can be watched."""

    MEM = 1 << 0
    INTER = 1 << 1
    COHER = 1 << 2
    CACHE = 1 << 3
    BRANCH = 1 << 4
    PROC = 1 << 5


_COMMAND_LETTERS = {
    "w": DebugCommand.WAT,
    "i": DebugCommand.IGN,
    "n": DebugCommand.NXT,
    "c": DebugCommand.CON,
    "e": DebugCommand.EXT,
    "q": DebugCommand.HLT,
    "h": DebugCommand.HLP,
    "l": DebugCommand.LST,
}

_WATCH_LETTERS = {
    "p": WatchFlag.PROC,
    "b": WatchFlag.BRANCH,
    "c": WatchFlag.CACHE,
    "o": WatchFlag.COHER,
    "i": WatchFlag.INTER,
    "m": WatchFlag.MEM,
}

_HELP = (
    "-- cadss-engine: Debug REPL --\n"
    "    Available Commands:\n"
    "     w [arg]  Add component(s) to watch-list.\n"
    '              arg: "[pbcoim]+"\n\n'
    "     i [arg]  Remove component(s) from watch-list.\n"
    '              arg: "[pbcoim]+"\n\n'
    '     n [arg]  Advance simulation by by "arg" ticks.\n'
    "              arg: T, where T > 0\n"
    "              If unspecified, advances by 1 tick.\n\n"
    "     c        Continue execution until state change.\n\n"
    "     e        Exit from debug REPL.\n\n"
    "     q        Quit (exit and halt) the simulation.\n\n"
    "     l        List watched components.\n\n"
    "     h        Show help message.\n"
)


def parse_debug_command(cmd_str: str) -> DebugCommand:
    """Map the first letter of a typed line to its command."""
    return _COMMAND_LETTERS.get(cmd_str[:1], DebugCommand.ERR)


def help_text() -> str:
    """Usage of the debug REPL."""
    return _HELP


def is_traced_externally() -> bool:
    """Whether another process, such as a debugger, traces this one.

    Returns False where the platform does not report a tracer.
    """
    try:
        status = Path("/proc/self/status").read_text()
    except OSError:
        return False
    for line in status.splitlines():
        if line.startswith("TracerPid:"):
            return _atoi(line.split(":", 1)[1]) != 0
    return False


@dataclass
class DebugState:
    """Settings and progress of the debugger across ticks."""

    on: bool = False
    tick: int = -1
    notify: bool = False
    watch_list: WatchFlag = WatchFlag(0)
    step_ticks: int = 0
    ext: bool = False
    out: Any = None

    def _write(self, text: str, out: Any = None) -> None:
        stream = out if out is not None else self.out
        (stream if stream is not None else sys.stdout).write(text)

    def update_watch_list(self, args: str, watch: bool) -> None:
        """Add or remove the components named by letters in ``args``."""
        for letter in args:
            flag = _WATCH_LETTERS.get(letter, WatchFlag(0))
            if watch:
                self.watch_list |= flag
            else:
                self.watch_list &= ~flag

    def watched_components_text(self) -> str:
        """The watch list as a row of 0/1 flags under ``[pbcoim]``."""
        bits = "".join(
            "1" if self.watch_list & flag else "0" for flag in _WATCH_LETTERS.values()
        )
        return (
            "Watched Components: [pbcoim]\n"
            f"                    [{bits}]\n"
        )

    def _handle(self, cmd: DebugCommand, cmd_str: str, out: Any) -> bool:
        self.notify = False
        if not cmd_str:
            return True

        if cmd == DebugCommand.NXT:
            self.step_ticks = _atoi(cmd_str[1:])
            if self.step_ticks <= 0:
                self.step_ticks = 1
            return False
        if cmd == DebugCommand.EXT:
            self.on = False
            self.watch_list = WatchFlag(0)
            return False
        if cmd == DebugCommand.CON:
            self.notify = True
            return False

        if cmd == DebugCommand.WAT:
            self.update_watch_list(cmd_str[1:], True)
        elif cmd == DebugCommand.IGN:
            self.update_watch_list(cmd_str[1:], False)
        elif cmd == DebugCommand.HLP:
            self._write(help_text(), out)
        elif cmd == DebugCommand.LST:
            self._write(self.watched_components_text(), out)
        elif cmd == DebugCommand.HLT:
            self.on = False
            self.watch_list = WatchFlag(0)
        else:
            self._write("Invalid command; use 'h' to display usage.\n", out)
        return True

    def handle_command(self, cmd: DebugCommand, cmd_str: str) -> bool:
        """Apply a command; return whether the prompt should be shown again."""
        return self._handle(DebugCommand(cmd), cmd_str, self.out)

    def repl(
        self,
        tick_count: int,
        read_line: Optional[Callable[[], Optional[str]]] = None,
        out: Any = None,
    ) -> bool:
        """Prompt for commands when due; return True if the user quit.

        ``read_line`` returns the next typed line, or an empty string or
        None at end of input, which leaves the debugger.
        """
        if self.ext:
            return False
        if self.tick >= 0 and tick_count >= self.tick:
            self.on = True
        if not self.on or self.notify:
            return False

        self.step_ticks -= 1
        if self.step_ticks > 0:
            return False

        reader = read_line if read_line is not None else sys.stdin.readline
        show_prompt = True
        while show_prompt:
            if tick_count:
                self._write(f"Tick: {tick_count}\n", out)
            self._write("> ", out)
            line = reader()
            if not line:
                self.on = False
                self.watch_list = WatchFlag(0)
                return False
            line = line[: MAX_DBG_LINE_BUF_SIZE - 1].split("\n", 1)[0]
            cmd = parse_debug_command(line)
            if cmd == DebugCommand.HLT:
                return True
            show_prompt = self._handle(cmd, line, out)
        return False

    def init_env(self, env: DebugEnv) -> None:
        """Reset a component's debug flags."""
        env.notify_state = False
        env.watched_comp = False
        env.extern_break = self.ext

    def watch_component(self, env: DebugEnv, mask: WatchFlag) -> None:
        """Mark a component watched if its bit is in the watch list."""
        env.watched_comp = bool(self.watch_list & mask)
        if env.watched_comp:
            env.notify_state = self.notify

    def check_notify(self, env: DebugEnv) -> None:
        """Stop continuing once a watched component reported a change."""
        if env.watched_comp:
            self.notify = self.notify and env.notify_state