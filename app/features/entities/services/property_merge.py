"""Property reconciliation policies.

Pure functions over property maps: nothing here touches the store, so every
policy can be exercised directly in unit tests.

Three policies exist because each write path trusts its input differently:

* ``ACCUMULATE`` (merge_peers): differing values are kept side by side and
  reported as conflicts.
* ``OVERWRITE`` (idempotent create): incoming keys replace existing ones.
* ``DISCARD`` (absorption): the canonical node is authoritative, incoming
  values only fill keys it does not have.
"""

import enum
import json
from dataclasses import dataclass, field
from typing import Any

from app.features.entities.models import PropertyMap

ACCUMULATED = "accumulated"


class PropertyConflictPolicy(enum.Enum):
    """How to resolve a key present on both sides with different values."""

    ACCUMULATE = "accumulate"
    OVERWRITE = "overwrite"
    DISCARD = "discard"


@dataclass(frozen=True)
class PropertyConflict:
    """A key whose existing and incoming values differed."""

    property: str
    existing_value: Any  # pyright: ignore[reportExplicitAny]
    new_value: Any  # pyright: ignore[reportExplicitAny]
    resolution: str = ACCUMULATED


@dataclass
class PropertyMergeResult:
    """Merged map plus the conflicts met while producing it."""

    merged: PropertyMap
    conflicts: list[PropertyConflict] = field(default_factory=list)
    keys_added: int = 0


def values_equal(left: object, right: object) -> bool:
    """Deep, type-aware equality for JSON-like values.

    Plain ``==`` would treat ``True`` and ``1`` as equal; comparing canonical
    JSON keeps booleans, numbers and strings apart while ignoring key order.
    Integral floats compare equal to the matching int, so ``1.0 == 1``.
    """
    return _canonical(left) == _canonical(right)


def _normalise(value: object) -> object:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, dict):
        return {key: _normalise(item) for key, item in value.items()}  # pyright: ignore[reportUnknownVariableType]
    if isinstance(value, list):
        return [_normalise(item) for item in value]  # pyright: ignore[reportUnknownVariableType]
    return value


def _canonical(value: object) -> str:
    return json.dumps(_normalise(value), sort_keys=True, default=str)


def merge_properties(existing: PropertyMap, incoming: PropertyMap) -> PropertyMergeResult:
    """Merge ``incoming`` into ``existing`` using the accumulation policy.

    Keys only in ``incoming`` are added verbatim. Keys in both keep the
    existing value when the values are deep-equal; otherwise the existing
    value is promoted to (or extended as) a list holding both, and a conflict
    is recorded. Re-supplying the same scalar after promotion appends again,
    so ``[x]`` becomes ``[x, x]``.

    Args:
        existing: The property map currently stored on the entity
        incoming: The properties supplied by the caller

    Returns:
        PropertyMergeResult with a new merged map and the recorded conflicts
    """
    merged: PropertyMap = dict(existing)
    conflicts: list[PropertyConflict] = []
    keys_added = 0

    for key, new_value in incoming.items():
        if key not in existing:
            merged[key] = new_value
            keys_added += 1
            continue

        current = existing[key]
        if values_equal(current, new_value):
            continue

        if isinstance(current, list):
            merged[key] = [*current, new_value]
        else:
            merged[key] = [current, new_value]

        conflicts.append(
            PropertyConflict(
                property=key,
                existing_value=current,
                new_value=new_value,
            )
        )

    return PropertyMergeResult(merged=merged, conflicts=conflicts, keys_added=keys_added)


def overlay_properties(existing: PropertyMap, incoming: PropertyMap) -> PropertyMergeResult:
    """Shallow merge where incoming values replace existing ones."""
    keys_added = sum(1 for key in incoming if key not in existing)
    return PropertyMergeResult(merged={**existing, **incoming}, keys_added=keys_added)


def fill_missing_properties(
    existing: PropertyMap, incoming: PropertyMap
) -> PropertyMergeResult:
    """Shallow merge where existing values win and incoming only fills gaps."""
    added = {key: value for key, value in incoming.items() if key not in existing}
    return PropertyMergeResult(merged={**existing, **added}, keys_added=len(added))


def apply_policy(
    existing: PropertyMap,
    incoming: PropertyMap,
    policy: PropertyConflictPolicy,
) -> PropertyMergeResult:
    """Resolve two property maps with the given conflict policy."""
    if policy is PropertyConflictPolicy.ACCUMULATE:
        return merge_properties(existing, incoming)
    if policy is PropertyConflictPolicy.OVERWRITE:
        return overlay_properties(existing, incoming)
    return fill_missing_properties(existing, incoming)
