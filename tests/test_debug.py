import io
import pathlib
from unittest import mock

import pytest

from cadss.debug import (
    DebugCommand,
    DebugState,
    WatchFlag,
    help_text,
    is_traced_externally,
    parse_debug_command,
)
from cadss.types import DebugEnv


@pytest.mark.parametrize(
    "text,expected",
    [
        ("w pc", DebugCommand.WAT),
        ("i m", DebugCommand.IGN),
        ("n 3", DebugCommand.NXT),
        ("c", DebugCommand.CON),
        ("e", DebugCommand.EXT),
        ("q", DebugCommand.HLT),
        ("h", DebugCommand.HLP),
        ("l", DebugCommand.LST),
        ("x", DebugCommand.ERR),
        ("", DebugCommand.ERR),
    ],
)
def test_parse_debug_command(text, expected):
    assert parse_debug_command(text) == expected


@pytest.mark.parametrize(
    "letter,bit",
    [("p", 0x20), ("b", 0x10), ("c", 0x08), ("o", 0x04), ("i", 0x02), ("m", 0x01)],
)
def test_watch_letters_set_their_bits(letter, bit):
    state = DebugState()
    state.update_watch_list(letter, True)
    assert int(state.watch_list) == bit


def test_watch_all_components():
    state = DebugState()
    state.update_watch_list("pbcoim", True)
    assert int(state.watch_list) == 0x3F


def test_update_watch_list_add_and_remove():
    state = DebugState()
    state.update_watch_list("pc", True)
    assert state.watch_list == WatchFlag.PROC | WatchFlag.CACHE
    state.update_watch_list("p", False)
    assert state.watch_list == WatchFlag.CACHE


def test_watched_components_text():
    state = DebugState()
    state.update_watch_list("pm", True)
    text = state.watched_components_text()
    assert text.startswith("Watched Components: [pbcoim]\n")
    assert "[100001]" in text


def test_next_sets_step_ticks():
    state = DebugState()
    assert state.handle_command(DebugCommand.NXT, "n 4") is False
    assert state.step_ticks == 4


@pytest.mark.parametrize("text", ["n", "n -2", "n x"])
def test_next_defaults_to_one_tick(text):
    state = DebugState()
    state.handle_command(DebugCommand.NXT, text)
    assert state.step_ticks == 1


def test_exit_disables_debugging():
    state = DebugState(on=True, watch_list=WatchFlag.CACHE)
    assert state.handle_command(DebugCommand.EXT, "e") is False
    assert state.on is False
    assert state.watch_list == WatchFlag(0)


def test_continue_sets_notify():
    state = DebugState(on=True)
    assert state.handle_command(DebugCommand.CON, "c") is False
    assert state.notify is True


def test_empty_command_reprompts_and_clears_notify():
    state = DebugState(notify=True)
    assert state.handle_command(DebugCommand.ERR, "") is True
    assert state.notify is False


def test_help_written_to_out():
    out = io.StringIO()
    state = DebugState(out=out)
    assert state.handle_command(DebugCommand.HLP, "h") is True
    assert out.getvalue() == help_text()


def test_invalid_command_message():
    out = io.StringIO()
    state = DebugState(out=out)
    assert state.handle_command(DebugCommand.ERR, "z") is True
    assert out.getvalue() == "Invalid command; use 'h' to display usage.\n"


def test_repl_inactive_reads_nothing():
    state = DebugState()

    def fail():
        raise AssertionError("should not read")

    assert state.repl(10, fail, io.StringIO()) is False


def test_repl_quit_halts():
    out = io.StringIO()
    state = DebugState(on=True)
    assert state.repl(0, iter(["q\n"]).__next__, out) is True
    assert out.getvalue() == "> "


def test_repl_list_then_step():
    out = io.StringIO()
    state = DebugState(on=True)
    lines = iter(["w b\n", "l\n", "n 3\n"])
    assert state.repl(2, lines.__next__, out) is False
    assert state.step_ticks == 3
    assert "Tick: 2\n" in out.getvalue()
    assert state.watched_components_text() in out.getvalue()

    def fail():
        raise AssertionError("should not read")

    assert state.repl(3, fail, out) is False
    assert state.repl(4, fail, out) is False
    assert state.repl(5, iter(["q"]).__next__, out) is True


def test_repl_starts_at_requested_tick():
    state = DebugState(tick=5)

    def fail():
        raise AssertionError("should not read")

    assert state.repl(4, fail, io.StringIO()) is False
    assert state.on is False
    assert state.repl(5, iter(["q"]).__next__, io.StringIO()) is True
    assert state.on is True


def test_repl_end_of_input_leaves_debugger():
    state = DebugState(on=True, watch_list=WatchFlag.MEM)
    assert state.repl(1, iter([""]).__next__, io.StringIO()) is False
    assert state.on is False
    assert state.watch_list == WatchFlag(0)


def test_repl_external_tracer_skips_prompt():
    state = DebugState(on=True, ext=True)

    def fail():
        raise AssertionError("should not read")

    assert state.repl(0, fail, io.StringIO()) is False


def test_env_watch_and_notify():
    state = DebugState(ext=True, notify=True)
    env = DebugEnv(watched_comp=True, notify_state=True)
    state.init_env(env)
    assert env == DebugEnv(False, False, True)

    state.update_watch_list("i", True)
    state.watch_component(env, WatchFlag.INTER)
    assert env.watched_comp is True
    assert env.notify_state is True

    env.notify_state = False
    state.check_notify(env)
    assert state.notify is False


def test_unwatched_component_does_not_clear_notify():
    state = DebugState(notify=True)
    env = DebugEnv()
    state.watch_component(env, WatchFlag.MEM)
    assert env.watched_comp is False
    state.check_notify(env)
    assert state.notify is True


def test_traced_when_tracer_pid_set():
    status = "Name:\tpython\nTracerPid:\t4242\n"
    with mock.patch.object(pathlib.Path, "read_text", return_value=status):
        assert is_traced_externally() is True


def test_not_traced_when_tracer_pid_zero():
    status = "Name:\tpython\nTracerPid:\t0\n"
    with mock.patch.object(pathlib.Path, "read_text", return_value=status):
        assert is_traced_externally() is False


def test_not_traced_without_status_file():
    with mock.patch.object(pathlib.Path, "read_text", side_effect=OSError("gone")):
        assert is_traced_externally() is False