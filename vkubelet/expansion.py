"""Expansion of ``$(VAR)`` references in strings.

``$$`` is an escaped operator, ``$(NAME)`` is replaced through a mapping
function, and anything else after ``$`` is kept as written.
"""

from __future__ import annotations

import re
from typing import Callable, Mapping

__all__ = ["mapping_func_for", "expand"]

_REFERENCE = re.compile(r"\$(?:(\$)|\(([^)]*)\)|(.))", re.DOTALL)


def _syntax_wrap(name: str) -> str:
    return f"$({name})"


def mapping_func_for(*contexts: Mapping[str, str]) -> Callable[[str], str]:
    """Return a mapping that looks a name up in each context in turn.

    A name found nowhere maps back to its own reference, ``$(name)``.
    """

    def mapping(name: str) -> str:
        for context in contexts:
            if name in context:
                return context[name]
        return _syntax_wrap(name)

    return mapping


def expand(text: str, mapping: Callable[[str], str]) -> str:
    """Replace variable references in ``text`` using ``mapping``."""

    def replace(match: re.Match[str]) -> str:
        escaped, name, other = match.groups()
        if escaped is not None:
            return "$"
        if name is not None:
            return mapping(name)
        return "$" + other

    return _REFERENCE.sub(replace, text)