"""Parser configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass

from stringent.errors import DEFAULT_SNIPPET_WIDTH


@dataclass(frozen=True)
class ParserSettings:
    """Tunables shared by parsing and evaluation.

    Attributes:
        max_depth: Maximum number of nested sub-expression parses before
            the parser gives up with NestingTooDeep
        snippet_width: Characters of source kept on each side of an error offset
    """

    max_depth: int = 100
    snippet_width: int = DEFAULT_SNIPPET_WIDTH

    def __post_init__(self) -> None:
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")
        if self.snippet_width < 1:
            raise ValueError(f"snippet_width must be positive, got {self.snippet_width}")

    @classmethod
    def from_env(cls) -> ParserSettings:
        """Create settings from environment variables.

        Reads STRINGENT_MAX_DEPTH and STRINGENT_SNIPPET_WIDTH; unset
        variables fall back to the defaults.
        """
        defaults = cls()
        return cls(
            max_depth=_int_from_env("STRINGENT_MAX_DEPTH", defaults.max_depth),
            snippet_width=_int_from_env("STRINGENT_SNIPPET_WIDTH", defaults.snippet_width),
        )


def _int_from_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
