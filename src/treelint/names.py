"""Name specifiers: literal strings, regular expressions or predicates."""

import fnmatch
import re
from typing import Any, Callable, Pattern, Union

from .errors import SpecError

NameSpecifier = Union[str, Pattern[str], Callable[[str], bool]]


def _final_component(name: str) -> str:
    return name.rstrip("/").rsplit("/", 1)[-1]


def match_name(name: str, specifier: NameSpecifier) -> bool:
    """Return whether ``name`` satisfies ``specifier``.

    Only the final path component of ``name`` is compared. A regular
    expression must match the whole name. Unknown specifier kinds never
    match.
    """
    name = _final_component(name)
    if isinstance(specifier, str):
        return name == specifier
    if isinstance(specifier, re.Pattern):
        return specifier.fullmatch(name) is not None
    if callable(specifier):
        return bool(specifier(name))
    return False


def compile_name_spec(value: Any, field_name: str = "name") -> NameSpecifier:
    """Turn a name specifier loaded from YAML into its runtime form.

    Accepted shapes: a string, ``{regex: <pattern>}`` or ``{glob: <pattern>}``.
    Already compiled patterns and callables pass through unchanged.
    """
    if isinstance(value, str) or isinstance(value, re.Pattern) or callable(value):
        return value
    if isinstance(value, dict):
        if len(value) != 1:
            raise SpecError(
                f"Field '{field_name}' must have exactly one of 'regex' or 'glob'"
            )
        kind, pattern = next(iter(value.items()))
        if not isinstance(pattern, str):
            raise SpecError(f"Field '{field_name}.{kind}' must be a string")
        if kind == "regex":
            try:
                return re.compile(pattern)
            except re.error as exc:
                raise SpecError(
                    f"Field '{field_name}' has an invalid regex: {exc}"
                ) from exc
        if kind == "glob":
            return re.compile(fnmatch.translate(pattern))
        raise SpecError(f"Field '{field_name}' has unknown pattern kind '{kind}'")
    raise SpecError(f"Field '{field_name}' must be a string or a pattern mapping")


def describe_name_spec(specifier: NameSpecifier) -> str:
    """Human-readable form of a name specifier for diagnostics."""
    if isinstance(specifier, str):
        return specifier
    if isinstance(specifier, re.Pattern):
        return f"/{specifier.pattern}/"
    return getattr(specifier, "__name__", repr(specifier))
