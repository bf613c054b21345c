"""Command-line engine that wires the components together and runs them."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence

from .branch import BranchPredictor
from .cache import Cache
from .coherence import Coherence
from .config import ConfigError, Settings, open_settings
from .debug import DebugState, WatchFlag, _atoi, is_traced_externally
from .interconnect import Interconnect
from .memory import Memory
from .processor import Processor
from .simple_cache import SimpleCache
from .trace import TraceReader

DEFAULT_SETTINGS = "default.config"
_VALUE_OPTIONS = set("cponíbtsmd".replace("í", "i"))


class ComponentLoadError(Exception):
    """Raised when a named component is not available."""


@dataclass
class EngineOptions:
    """Options given to the engine on its command line."""

    prog: str = "cadss-engine"
    argv: list[str] = field(default_factory=list)
    verbose: bool = False
    processor_count: int = 1
    cache: Optional[str] = None
    processor: Optional[str] = None
    coherence: Optional[str] = None
    interconnect: Optional[str] = None
    branch: Optional[str] = None
    memory: Optional[str] = None
    trace: Optional[str] = None
    settings_file: Optional[str] = None
    debug_on: bool = False
    debug_tick: int = -1
    show_help: bool = False


def help_text(prog: str) -> str:
    """Usage of the engine."""
    return (
        f"{prog} \n"
        "  -h          \t Help message\n"
        "  -v          \t Verbose\n"
        "  -n <num>    \t Number of processors to simulate\n"
        "  -c <file>   \t Cache simulator\n"
        "  -p <file>   \t Pipeline simulator\n"
        "  -o <file>   \t Coherence simulator\n"
        "  -i <file>   \t Interconnection simulator\n"
        "  -b <file>   \t Branch simulator\n"
        "  -m <file>   \t Memory simulator\n"
        "  -t <file>   \t Trace file / directory\n"
        "  -s <file>   \t Setting / configuration file\n"
        "  -d [<tick>] \t Enable debugging\n"
        "              \t  - drops into a debug REPL\n"
        "              \t  - if <tick> specified, waits for <tick>\n"
        "              \t    cycles to elapse before prompt\n"
        "              \t  - if run with external debugger, state\n"
        "              \t    changes deliver SIGTRAP\n"
    )


_NAME_OPTIONS = {
    "c": "cache",
    "p": "processor",
    "o": "coherence",
    "i": "interconnect",
    "b": "branch",
    "m": "memory",
    "t": "trace",
    "s": "settings_file",
}


def _apply_option(options: EngineOptions, letter: str, value: str) -> None:
    if letter == "d":
        tick = _atoi(value)
        if tick >= 0:
            options.debug_tick = tick
            options.debug_on = False
        else:
            options.debug_tick = -1
    elif letter == "n":
        options.processor_count = _atoi(value)
    else:
        setattr(options, _NAME_OPTIONS[letter], value)


def parse_args(argv: Sequence[str]) -> EngineOptions:
    """Parse the full argument vector, program name first.

    ``-d`` given last with no tick turns debugging on at once.
    """
    argv = list(argv)
    options = EngineOptions(prog=argv[0] if argv else "cadss-engine", argv=argv)
    rest = iter(argv[1:])
    for arg in rest:
        if arg == "--":
            break
        if not arg.startswith("-") or arg == "-":
            continue
        letters = arg[1:]
        for pos, letter in enumerate(letters):
            if letter in _VALUE_OPTIONS:
                value = letters[pos + 1 :] or next(rest, None)
                if value is None:
                    if letter == "d":
                        options.debug_on = True
                else:
                    _apply_option(options, letter, value)
                break
            if letter == "h":
                options.show_help = True
                return options
            if letter == "v":
                options.verbose = True
    return options


def _make_cache(args, coherence, processor_count, verbose):
    return Cache(args, coherence)


def _make_simple_cache(args, coherence, processor_count, verbose):
    return SimpleCache(args, coherence, processor_count, verbose)


_COMPONENTS: dict[str, dict[str, Callable[..., Any]]] = {
    "trace": {"trace": TraceReader},
    "memory": {"memory": Memory},
    "interconnect": {"interconnect": Interconnect},
    "coherence": {"coherence": Coherence},
    "cache": {"cache": _make_cache, "simpleCache": _make_simple_cache},
    "branch": {"branch": BranchPredictor},
    "processor": {"processor": Processor},
}


def load_component(name: str, kind: str) -> Callable[..., Any]:
    """Return the factory for the ``kind`` component called ``name``.

    Only the last path element of ``name`` is used.
    """
    base = os.path.basename(name.rstrip("/")) or name
    try:
        return _COMPONENTS[kind][base]
    except KeyError:
        raise ComponentLoadError(
            f"Failed to load {kind} component using {name}"
        ) from None


def _component_args(settings: Settings, name: str) -> list[str]:
    try:
        return settings.get(name)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        return []


def run_simulation(
    options: EngineOptions,
    settings: Settings,
    read_line: Optional[Callable[[], Optional[str]]] = None,
    out: Any = None,
) -> int:
    """Build the components, run until no core progresses; return the ticks."""
    stream = out if out is not None else sys.stdout
    count = options.processor_count

    make_trace = load_component("trace", "trace")
    make_inter = load_component(options.interconnect or "interconnect", "interconnect")
    make_coher = load_component(options.coherence or "coherence", "coherence")
    make_cache = load_component(options.cache or "cache", "cache")
    make_proc = load_component(options.processor or "processor", "processor")
    make_branch = load_component(options.branch or "branch", "branch")
    make_memory = load_component(options.memory or "memory", "memory")

    debug = DebugState(on=options.debug_on, tick=options.debug_tick, out=stream)
    if debug.on and is_traced_externally():
        debug.ext = True

    trace = make_trace(options.trace, count)
    memory = make_memory(_component_args(settings, "memory"))
    inter = make_inter(_component_args(settings, "interconnect"), memory, count)
    coher = make_coher(_component_args(settings, "coherence"), inter, count)
    cache = make_cache(_component_args(settings, "cache"), coher, count, options.verbose)
    branch = make_branch(_component_args(settings, "branch"))
    proc = make_proc(
        _component_args(settings, "processor"), trace, cache, branch, count, stream
    )

    watched = [
        (proc, WatchFlag.PROC),
        (branch, WatchFlag.BRANCH),
        (cache, WatchFlag.CACHE),
        (coher, WatchFlag.COHER),
        (inter, WatchFlag.INTER),
        (memory, WatchFlag.MEM),
    ]
    for component, _ in watched:
        debug.init_env(component.dbg_env)

    tick_count = 0
    while True:
        if debug.repl(tick_count, read_line, stream):
            break
        for component, mask in watched:
            debug.watch_component(component.dbg_env, mask)
        progress = proc.tick()
        tick_count += 1
        for component, _ in watched:
            debug.check_notify(component.dbg_env)
        if not progress:
            break

    proc.finish(stream)
    proc.destroy()
    trace.destroy()
    return tick_count


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the engine with command-line arguments (program name excluded)."""
    args = list(sys.argv[1:] if argv is None else argv)
    options = parse_args(["cadss-engine", *args])
    if options.show_help:
        print(help_text(options.prog), end="")
        return 0

    settings_file = options.settings_file
    if settings_file is None:
        print(
            f"No setting file specified, using {DEFAULT_SETTINGS}", file=sys.stderr
        )
        settings_file = DEFAULT_SETTINGS
    try:
        settings = open_settings(settings_file)
    except ConfigError as exc:
        print(exc, file=sys.stderr)
        print(f"Failed to open setting file - {settings_file}", file=sys.stderr)
        return 0

    try:
        run_simulation(options, settings)
    except ComponentLoadError as exc:
        print(exc, file=sys.stderr)
        return 0
    except OSError as exc:
        print(f"Attempt to open trace file: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())