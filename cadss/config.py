"""Configuration files that hand each component its own argument vector.

A configuration is a sequence of component sections. A section starts with
``__name`` and is followed by whitespace-separated arguments. ``//`` comments
run to the end of the line and ``/* ... */`` comments may span lines. Text in
double quotes is taken as one argument. The first argument of every section
is the component name itself, as ``argv[0]`` would be.
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

_WHITESPACE = " \t\n\v\f\r"
_COMMENT_STARTS = ("//", "/*")


class ConfigError(Exception):
    """Raised when a configuration cannot be read, parsed or queried."""


@dataclass
class Settings:
    """Parsed configuration: component names with their argument lists."""

    components: list[tuple[str, list[str]]] = field(default_factory=list)

    def get(self, component_name: str) -> list[str]:
        """Return a copy of the arguments of the first section with this name."""
        if component_name is None:
            raise ConfigError("No component name specified")
        if not self.components:
            raise ConfigError("Configuration file not opened or parsed")
        for name, args in self.components:
            if name == component_name:
                return list(args)
        raise ConfigError(
            f"Component name - {component_name} was not found in settings"
        )

    def describe(self) -> str:
        """Render every section and its numbered arguments."""
        lines = ["Printing Component configurations:"]
        for name, args in self.components:
            lines.append(f"  __ {name}  (arg count - {len(args)})")
            lines.extend(f"{index} - {arg}" for index, arg in enumerate(args))
        return "\n".join(lines) + "\n"


def _skip_to_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos] not in _WHITESPACE:
        pos += 1
    return pos


def _scan_unquoted(text: str, pos: int) -> int:
    while (
        pos < len(text)
        and text[pos] not in _WHITESPACE
        and not text.startswith(_COMMENT_STARTS, pos)
    ):
        pos += 1
    return pos


def parse_settings(text: str) -> Settings:
    """Parse configuration text into :class:`Settings`."""
    components: list[tuple[str, list[str]]] = []
    current: list[str] | None = None
    length = len(text)
    pos = 0

    while pos < length:
        ch = text[pos]
        if ch in _WHITESPACE:
            pos += 1
            continue

        if text.startswith("//", pos):
            end = text.find("\n", pos + 2)
            pos = length if end < 0 else end + 1
            continue

        if text.startswith("/*", pos):
            end = text.find("*/", pos + 2)
            if end < 0:
                warnings.warn("multiline comment trailed to end of file")
                pos = length
            else:
                pos = end + 2
            continue

        if text.startswith("__", pos):
            start = pos + 2
            end = _skip_to_whitespace(text, start)
            if end == length:
                raise ConfigError("Component name trailed to end of file")
            name = text[start:end]
            current = [name]
            components.append((name, current))
            pos = end + 1
            continue

        if current is None:
            raise ConfigError("Failed to start with either comments or component")

        if ch == '"':
            end = text.find('"', pos + 1)
            if end < 0:
                end = length
            arg = text[pos + 1 : end]
            pos = end + 1
        else:
            end = _scan_unquoted(text, pos)
            arg = text[pos:end]
            pos = end

        if arg:
            current.append(arg)

    return Settings(components)


def open_settings(path: Union[str, Path]) -> Settings:
    """Read and parse the configuration file at ``path``."""
    try:
        text = Path(path).read_text(encoding="utf-8", errors="surrogateescape")
    except OSError as exc:
        raise ConfigError(f"Opening settings file {path}: {exc}") from exc
    return parse_settings(text)