"""
Snapshot and diff models for the Antigravity state database.

A snapshot is a point-in-time read of every key in the store, with values
JSON-decoded where possible. Two snapshots are compared key by key.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, List, Mapping


def decode_value(raw: str) -> Any:
    """Decode a stored value as JSON, falling back to the raw string."""
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return raw


@dataclass(frozen=True)
class Snapshot:
    """Immutable key -> decoded value mapping taken at one instant."""
    data: Mapping[str, Any]
    taken_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self):
        object.__setattr__(self, 'data', MappingProxyType(dict(self.data)))

    @classmethod
    def from_rows(cls, rows: Mapping[str, str]) -> 'Snapshot':
        return cls({key: decode_value(value) for key, value in rows.items()})

    def __len__(self) -> int:
        return len(self.data)

    def __contains__(self, key: str) -> bool:
        return key in self.data

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.data)


@dataclass(frozen=True)
class DiffResult:
    """Key-level differences between two snapshots."""
    has_changes: bool
    changed_fields: List[str]
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'has_changes': self.has_changes,
            'changed_fields': list(self.changed_fields),
            'summary': self.summary,
        }


def compute_diff(old: Snapshot, new: Snapshot) -> DiffResult:
    """
    Compare two snapshots.

    Keys of the new snapshot come first, each classified as ``added`` or
    ``changed``; keys only present in the old snapshot follow as
    ``removed``. Values are compared after JSON decoding, so reordered
    object keys inside a value are not a change.
    """
    changed_fields: List[str] = []

    for key, value in new.data.items():
        if key not in old.data:
            changed_fields.append(f"{key}: added")
        elif old.data[key] != value:
            changed_fields.append(f"{key}: changed")

    for key in old.data:
        if key not in new.data:
            changed_fields.append(f"{key}: removed")

    has_changes = bool(changed_fields)
    summary = f"{len(changed_fields)} fields changed" if has_changes else "No changes"
    return DiffResult(has_changes=has_changes, changed_fields=changed_fields, summary=summary)


@dataclass(frozen=True)
class StoreChangedEvent:
    """Emitted by the state monitor when a tick observes differences."""
    new_snapshot: Snapshot
    old_snapshot: Snapshot
    diff: DiffResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            'newData': self.new_snapshot.to_dict(),
            'oldData': self.old_snapshot.to_dict(),
            'diff': self.diff.to_dict(),
        }
