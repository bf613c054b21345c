import io

import pytest

from cadss.config import Settings, parse_settings
from cadss.engine import (
    ComponentLoadError,
    EngineOptions,
    help_text,
    load_component,
    main,
    parse_args,
    run_simulation,
)
from cadss.interconnect import Interconnect
from cadss.coherence import Coherence
from cadss.memory import DRAM_FETCH_TICKS, Memory
from cadss.trace import TraceReader

CONFIG = """// sample configuration
__memory
__interconnect
__coherence -s 0
__cache
__branch
__processor
"""


def _trace(tmp_path, text, name="run.trace"):
    path = tmp_path / name
    path.write_text(text)
    return str(path)


def _run(tmp_path, text, extra=(), read_line=None):
    options = parse_args(["cadss", "-t", _trace(tmp_path, text), *extra])
    out = io.StringIO()
    ticks = run_simulation(options, parse_settings(CONFIG), read_line, out)
    return ticks, out.getvalue()


def test_help_text_lists_options():
    text = help_text("prog")
    assert text.startswith("prog \n")
    assert "  -n <num>    \t Number of processors to simulate\n" in text
    assert "-s <file>" in text


def test_parse_args_defaults():
    options = parse_args(["cadss"])
    assert options == EngineOptions(prog="cadss", argv=["cadss"])
    assert options.debug_tick == -1


def test_parse_args_values():
    argv = ["cadss", "-v", "-n", "4", "-c", "simpleCache", "-tfile.trace", "-s", "x.config"]
    options = parse_args(argv)
    assert options.verbose is True
    assert options.processor_count == 4
    assert options.cache == "simpleCache"
    assert options.trace == "file.trace"
    assert options.settings_file == "x.config"


def test_parse_args_debug_without_tick():
    options = parse_args(["cadss", "-v", "-d"])
    assert options.debug_on is True
    assert options.debug_tick == -1


def test_parse_args_debug_tick():
    options = parse_args(["cadss", "-d", "7"])
    assert options.debug_on is False
    assert options.debug_tick == 7


def test_parse_args_negative_debug_tick():
    options = parse_args(["cadss", "-d", "-3"])
    assert options.debug_tick == -1
    assert options.debug_on is False


def test_parse_args_help_stops():
    options = parse_args(["cadss", "-h", "-n", "3"])
    assert options.show_help is True
    assert options.processor_count == 1


def test_load_component_by_path():
    assert load_component("memory", "memory") is Memory
    assert load_component("./memory/", "memory") is Memory
    assert load_component("trace", "trace") is TraceReader


def test_load_simple_cache_factory():
    factory = load_component("some/dir/simpleCache", "cache")
    memory = Memory()
    inter = Interconnect([], memory, 1)
    coher = Coherence(["coherence"], inter, 1)
    cache = factory(["simpleCache", "-b", "6"], coher, 1, False)
    assert cache.block_size == 64


@pytest.mark.parametrize("name,kind", [("nothing", "cache"), ("cache", "gpu")])
def test_load_component_unknown(name, kind):
    with pytest.raises(ComponentLoadError):
        load_component(name, kind)


def test_run_reports_ticks(tmp_path):
    ticks, output = _run(tmp_path, "A 400 1, 2, 3\n")
    assert output == f"Ticks - {ticks}\n"


def test_more_ops_take_more_ticks(tmp_path):
    few, _ = _run(tmp_path, "A 400 1, 2, 3\n")
    many, _ = _run(tmp_path, "A 400 1, 2, 3\nX 404 1, 2, 3\nA 408 4, 5, 6\n")
    assert many > few


def test_memory_op_waits_for_dram(tmp_path):
    ticks, output = _run(tmp_path, "L 1000,4\n")
    assert ticks > DRAM_FETCH_TICKS
    assert output.endswith(f"Ticks - {ticks}\n")


def test_simple_cache_completes_memory_op(tmp_path):
    ticks, output = _run(tmp_path, "S 2040,8 3\n", extra=("-c", "simpleCache"))
    assert ticks > DRAM_FETCH_TICKS
    assert output == f"Ticks - {ticks}\n"


def test_debug_quit_halts_before_first_tick(tmp_path):
    ticks, output = _run(
        tmp_path, "A 400 1, 2, 3\n", extra=("-d",), read_line=iter(["q\n"]).__next__
    )
    assert ticks == 0
    assert output == "> Ticks - 0\n"


def test_debug_exit_runs_to_completion(tmp_path):
    plain, _ = _run(tmp_path, "A 400 1, 2, 3\nA 404 1, 2, 3\n")
    debugged, output = _run(
        tmp_path,
        "A 400 1, 2, 3\nA 404 1, 2, 3\n",
        extra=("-d",),
        read_line=iter(["e\n"]).__next__,
    )
    assert debugged == plain
    assert output.startswith("> ")


def test_run_with_empty_settings(tmp_path):
    options = parse_args(["cadss", "-t", _trace(tmp_path, "A 400 1, 2, 3\n")])
    out = io.StringIO()
    ticks = run_simulation(options, Settings([]), None, out)
    assert out.getvalue() == f"Ticks - {ticks}\n"


def test_main_help(capsys):
    assert main(["-h"]) == 0
    assert capsys.readouterr().out == help_text("cadss-engine")


def test_main_missing_settings(tmp_path, capsys):
    missing = str(tmp_path / "absent.config")
    assert main(["-s", missing]) == 0
    assert f"Failed to open setting file - {missing}" in capsys.readouterr().err


def test_main_unknown_component(tmp_path, capsys):
    config = tmp_path / "run.config"
    config.write_text(CONFIG)
    trace = _trace(tmp_path, "A 400 1, 2, 3\n")
    assert main(["-s", str(config), "-t", trace, "-c", "fancyCache"]) == 0
    assert "Failed to load cache component using fancyCache" in capsys.readouterr().err


def test_main_runs(tmp_path, capsys):
    config = tmp_path / "run.config"
    config.write_text(CONFIG)
    trace = _trace(tmp_path, "B 400 500\nA 500 1, 2, 3\n")
    assert main(["-s", str(config), "-t", trace]) == 0
    assert capsys.readouterr().out.startswith("Ticks - ")