"""Process-wide table of the builtins every ``Interpreter`` starts with."""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass

from .common import ShellBuiltin


@dataclass(frozen=True, slots=True)
class BuiltinSpec:
    name: str
    handler: ShellBuiltin
    description: str = ""


def _summary(func: ShellBuiltin) -> str:
    doc = (func.__doc__ or "").strip()
    return doc.splitlines()[0] if doc else ""


class BuiltinRegistry:
    """Builtins keyed by name; registering a name again replaces it.

    Interpreters copy the table when they are built, so later registrations
    only reach interpreters created afterwards.
    """

    def __init__(self) -> None:
        self._builtins: dict[str, BuiltinSpec] = {}

    def builtin(
        self,
        name: str | None = None,
        *,
        description: str | None = None,
    ) -> Callable[[ShellBuiltin], ShellBuiltin]:
        """Register the decorated function.

        ``name`` defaults to the function name without trailing underscores
        (``exit_`` registers ``exit``); ``description`` defaults to the first
        docstring line.
        """

        def decorator(func: ShellBuiltin) -> ShellBuiltin:
            key = name or func.__name__.rstrip("_")
            summary = _summary(func) if description is None else description
            self._builtins[key] = BuiltinSpec(key, func, summary)
            return func

        return decorator

    def __iter__(self) -> Iterator[BuiltinSpec]:
        return iter(tuple(self._builtins.values()))

    def __len__(self) -> int:
        return len(self._builtins)

    def __contains__(self, name: object) -> bool:
        return name in self._builtins


BUILTIN_REGISTRY = BuiltinRegistry()


__all__ = ["BUILTIN_REGISTRY", "BuiltinRegistry", "BuiltinSpec"]
