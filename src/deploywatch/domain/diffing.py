"""Structural diff between two workload spec snapshots.

Specs are JSON-shaped: mappings with string keys, lists and scalars. Anything
else cannot be compared reliably and fails the diff instead of hiding a change.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Final

from deploywatch.domain.errors import ClassificationError

_SCALARS: Final = (str, int, float, bool, type(None))


class _Unset:
    __slots__ = ()

    def __repr__(self) -> str:
        return "<unset>"


UNSET: Final = _Unset()


class SpecDiffError(ClassificationError):
    """Raised when a spec snapshot contains values that cannot be diffed."""


@dataclass(frozen=True, slots=True)
class FieldChange:
    path: str
    before: object
    after: object

    def render(self) -> str:
        return f"{self.path}: {_render_value(self.before)} → {_render_value(self.after)}"


def diff_specs(
    before: Mapping[str, object],
    after: Mapping[str, object],
) -> tuple[FieldChange, ...]:
    """Return the changed leaves between two specs, ordered by path."""

    _validate("", before)
    _validate("", after)
    changes: list[FieldChange] = []
    _diff_value("", before, after, changes)
    return tuple(changes)


def render_changes(changes: Sequence[FieldChange]) -> str:
    if not changes:
        return "no field changes"
    return "; ".join(change.render() for change in changes)


def _diff_value(path: str, before: object, after: object, out: list[FieldChange]) -> None:
    if isinstance(before, Mapping) and isinstance(after, Mapping):
        _diff_mapping(path, before, after, out)  # pyright: ignore[reportUnknownArgumentType]
        return
    if _is_list(before) and _is_list(after):
        _diff_list(path, before, after, out)  # pyright: ignore[reportArgumentType]
        return
    if type(before) is not type(after) or before != after:
        out.append(FieldChange(path or "spec", before, after))


def _diff_mapping(
    path: str,
    before: Mapping[object, object],
    after: Mapping[object, object],
    out: list[FieldChange],
) -> None:
    for key in sorted(set(before) | set(after)):  # pyright: ignore[reportArgumentType]
        child = f"{path}.{key}" if path else str(key)
        _diff_value(child, before.get(key, UNSET), after.get(key, UNSET), out)


def _diff_list(
    path: str,
    before: Sequence[object],
    after: Sequence[object],
    out: list[FieldChange],
) -> None:
    for index in range(max(len(before), len(after))):
        _diff_value(
            f"{path}[{index}]",
            before[index] if index < len(before) else UNSET,
            after[index] if index < len(after) else UNSET,
            out,
        )


def _is_list(value: object) -> bool:
    return isinstance(value, Sequence) and not isinstance(value, str | bytes)


def _validate(path: str, value: object) -> None:
    if isinstance(value, _SCALARS):
        return
    if isinstance(value, Mapping):
        for key, child in value.items():  # pyright: ignore[reportUnknownVariableType]
            if not isinstance(key, str):
                raise SpecDiffError(f"Non-string key {key!r} at {path or 'spec'}")
            _validate(f"{path}.{key}" if path else key, child)
        return
    if _is_list(value):
        for index, child in enumerate(value):  # pyright: ignore[reportArgumentType]
            _validate(f"{path}[{index}]", child)
        return
    raise SpecDiffError(f"Cannot diff value of type {type(value).__name__} at {path or 'spec'}")


def _render_value(value: object) -> str:
    if value is UNSET:
        return "<unset>"
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"))
