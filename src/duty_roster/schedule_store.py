"""
Assignment Store for the Duty Roster system

Canonical in-memory map of (date, employee) to the ordered list of shift
assignments for that cell. A key is present only while its list is
non-empty, and assignment ids are unique within a key.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Set, Tuple
from uuid import uuid4
import logging

from .date_utils import month_key
from .exceptions import DataValidationError

logger = logging.getLogger(__name__)

ScheduleKey = Tuple[str, str]  # (date_str, employee_id)


def new_id() -> str:
    """Default identity generator"""
    return str(uuid4())


@dataclass(frozen=True)
class Assignment:
    """One employee-date-shift record, possibly annotated"""
    id: str
    date_str: str  # YYYY-MM-DD
    employee_id: str
    shift_type_id: str
    note: Optional[str] = None  # diligence text
    is_locked: bool = False  # advisory only, generation does not check it
    is_swap: bool = False
    is_exchange: bool = False

    @property
    def key(self) -> ScheduleKey:
        return (self.date_str, self.employee_id)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "dateStr": self.date_str,
            "employeeId": self.employee_id,
            "shiftTypeId": self.shift_type_id,
            "isLocked": self.is_locked,
            "isSwap": self.is_swap,
            "isExchange": self.is_exchange,
        }
        if self.note is not None:
            data["note"] = self.note
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Assignment':
        return cls(
            id=data["id"],
            date_str=data["dateStr"],
            employee_id=str(data["employeeId"]),
            shift_type_id=data["shiftTypeId"],
            note=data.get("note"),
            is_locked=bool(data.get("isLocked", False)),
            is_swap=bool(data.get("isSwap", False)),
            is_exchange=bool(data.get("isExchange", False)),
        )


@dataclass(frozen=True)
class DaySnapshot:
    """Clipboard copy of one date's assignments across all employees"""
    date_str: str
    entries: Tuple[Assignment, ...] = field(default_factory=tuple)

    def __len__(self) -> int:
        return len(self.entries)


def storage_key(date_str: str, employee_id: str) -> str:
    """Flat key used by the local cache format"""
    return f"{date_str}_{employee_id}"


class AssignmentStore:
    """Keyed container of schedule entries with a non-empty-sequence invariant"""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self._entries: Dict[ScheduleKey, List[Assignment]] = {}
        self._id_factory = id_factory or new_id

    def new_id(self) -> str:
        return self._id_factory()

    # Read access
    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[ScheduleKey]:
        return iter(list(self._entries))

    def is_empty(self) -> bool:
        return not self._entries

    def keys(self) -> List[ScheduleKey]:
        return list(self._entries)

    def get_entries(self, date_str: str, employee_id: str) -> List[Assignment]:
        """Entries of one cell, in insertion order (a copy)"""
        return list(self._entries.get((date_str, employee_id), []))

    def all_entries(self) -> List[Assignment]:
        return [entry for entries in self._entries.values() for entry in entries]

    def find(self, assignment_id: str) -> Optional[Assignment]:
        for entries in self._entries.values():
            for entry in entries:
                if entry.id == assignment_id:
                    return entry
        return None

    def months(self) -> Set[str]:
        """Month keys that currently hold at least one assignment"""
        return {month_key(date_str) for date_str, _ in self._entries}

    def group_by_month(self) -> Dict[str, List[Assignment]]:
        groups: Dict[str, List[Assignment]] = {}
        for entry in self.all_entries():
            groups.setdefault(month_key(entry.date_str), []).append(entry)
        return groups

    # Mutations
    def add_assignment(self, date_str: str, employee_id: str, shift_type_id: str,
                       note: Optional[str] = None) -> Assignment:
        """Append a new assignment to the cell; stacking the same shift type is allowed"""
        entry = Assignment(
            id=self.new_id(),
            date_str=date_str,
            employee_id=employee_id,
            shift_type_id=shift_type_id,
            note=note
        )
        self._entries.setdefault(entry.key, []).append(entry)
        return entry

    def remove_assignment(self, assignment_id: str, date_str: str,
                          employee_id: str) -> Optional[Assignment]:
        """Remove by id within the addressed cell. Misses are no-ops."""
        key = (date_str, employee_id)
        entries = self._entries.get(key)
        if not entries:
            return None

        removed = None
        remaining = []
        for entry in entries:
            if removed is None and entry.id == assignment_id:
                removed = entry
            else:
                remaining.append(entry)

        if removed is None:
            return None
        self._set(key, remaining)
        return removed

    def replace_entries(self, date_str: str, employee_id: str,
                        entries: Iterable[Assignment]):
        """Overwrite the cell's sequence; an empty sequence deletes the key"""
        key = (date_str, employee_id)
        entries = list(entries)
        seen = set()
        for entry in entries:
            if entry.key != key:
                raise DataValidationError(
                    f"Assignment {entry.id} belongs to {entry.key}, not {key}"
                )
            if entry.id in seen:
                raise DataValidationError(f"Duplicate assignment id {entry.id} in {key}")
            seen.add(entry.id)
        self._set(key, entries)

    def copy_day(self, date_str: str) -> DaySnapshot:
        entries = tuple(entry for entry in self.all_entries() if entry.date_str == date_str)
        return DaySnapshot(date_str=date_str, entries=entries)

    def _paste_day(self, snapshot: DaySnapshot, target_date: str) -> List[Assignment]:
        """Replace every cell of target_date with fresh copies of the snapshot.

        Destructive; callers go through the confirmation guard.
        """
        for key in [key for key in self._entries if key[0] == target_date]:
            del self._entries[key]

        pasted = []
        for entry in snapshot.entries:
            copy = replace(entry, id=self.new_id(), date_str=target_date)
            self._entries.setdefault(copy.key, []).append(copy)
            pasted.append(copy)
        return pasted

    def _clear_all(self) -> int:
        """Empty the store, returning how many cells were dropped"""
        count = len(self._entries)
        self._entries.clear()
        return count

    def _set(self, key: ScheduleKey, entries: List[Assignment]):
        if entries:
            self._entries[key] = entries
        else:
            self._entries.pop(key, None)

    # Serialization
    def load_entries(self, entries: Iterable[Assignment]):
        """Replace the whole content with persisted entries"""
        self._entries.clear()
        for entry in entries:
            bucket = self._entries.setdefault(entry.key, [])
            if any(existing.id == entry.id for existing in bucket):
                logger.warning(f"Skipping duplicate assignment {entry.id} for {entry.key}")
                continue
            bucket.append(entry)

    def to_dict(self) -> Dict[str, List[Dict[str, Any]]]:
        return {
            storage_key(date_str, employee_id): [entry.to_dict() for entry in entries]
            for (date_str, employee_id), entries in self._entries.items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, List[Dict[str, Any]]],
                  id_factory: Optional[Callable[[], str]] = None) -> 'AssignmentStore':
        store = cls(id_factory)
        store.load_entries(
            Assignment.from_dict(item) for items in data.values() for item in items
        )
        return store
