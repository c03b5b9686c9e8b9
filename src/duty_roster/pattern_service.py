"""
Pattern Resolver & Generator for the Duty Roster system

Turns a comma-separated shift sequence ("09-17, 09-17, FOLGA, X") into a
cycle of shift type references and holes, then expands that cycle over a
date range for a set of employees.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Union
import logging

from .data_manager import ShiftType, find_off_day_shift
from .date_utils import parse_iso_date, to_iso_date
from .exceptions import (
    EmptyPatternError,
    EmptyTargetError,
    InvalidDateRangeError,
    UnresolvedSegmentError,
)
from .schedule_store import Assignment, AssignmentStore, new_id

logger = logging.getLogger(__name__)

OFF_DAY_KEYWORDS = {"FOLGA", "F"}
BLANK_KEYWORDS = {"OFF", "EMPTY", "X"}


@dataclass(frozen=True)
class Hole:
    """Pattern position that produces no assignment"""
    segment: str


@dataclass(frozen=True)
class TypeRef:
    """Pattern position resolved to a shift type"""
    segment: str
    shift_type_id: str


@dataclass(frozen=True)
class Unresolved:
    """Pattern position that matched nothing"""
    segment: str


PatternStep = Union[Hole, TypeRef, Unresolved]


def split_pattern(pattern: str) -> List[str]:
    """Split on commas, trim, and drop empty segments"""
    return [part.strip() for part in (pattern or "").split(",") if part.strip()]


def match_segment(segment: str, shift_types: Sequence[ShiftType]) -> PatternStep:
    """Resolve one segment. Rules are checked in order, first match wins."""
    upper = segment.upper()

    off_day = find_off_day_shift(shift_types)
    if off_day is not None and upper in OFF_DAY_KEYWORDS:
        return TypeRef(segment, off_day.id)

    if upper in BLANK_KEYWORDS:
        return Hole(segment)

    for shift in shift_types:
        if shift.code.upper() == upper:
            return TypeRef(segment, shift.id)

    for shift in shift_types:
        if shift.label.upper() == upper:
            return TypeRef(segment, shift.id)

    # Ids are matched case-sensitively
    for shift in shift_types:
        if shift.id == segment:
            return TypeRef(segment, shift.id)

    for shift in shift_types:
        if upper in shift.label.upper():
            return TypeRef(segment, shift.id)

    return Unresolved(segment)


def resolve_pattern(pattern: str, shift_types: Sequence[ShiftType]) -> List[PatternStep]:
    """Resolve a raw pattern into its cycle of holes and shift references.

    Raises:
        EmptyPatternError: no segments remain after trimming
        UnresolvedSegmentError: a segment matches no shift type
    """
    segments = split_pattern(pattern)
    if not segments:
        raise EmptyPatternError(
            "The pattern is empty. Enter a comma-separated sequence of shifts."
        )

    cycle = []
    for segment in segments:
        step = match_segment(segment, shift_types)
        if isinstance(step, Unresolved):
            raise UnresolvedSegmentError(segment)
        cycle.append(step)
    return cycle


def holes_in_range(cycle: Sequence[PatternStep], days: int) -> int:
    """Number of hole days when the cycle is expanded over `days` days"""
    return sum(1 for offset in range(days) if isinstance(cycle[offset % len(cycle)], Hole))


def generate_pattern_schedule(target_employee_ids: Iterable[str], start_date: str,
                              days_to_generate: int, shift_types: Sequence[ShiftType],
                              pattern: str,
                              id_factory: Optional[Callable[[], str]] = None) -> List[Assignment]:
    """Expand a pattern into fresh assignments, one per target employee per non-hole day"""
    employee_ids = list(dict.fromkeys(target_employee_ids))
    if not employee_ids:
        raise EmptyTargetError("Select at least one employee to generate a schedule.")
    if days_to_generate < 1:
        raise InvalidDateRangeError(f"Invalid day count: {days_to_generate}")
    try:
        start = parse_iso_date(to_iso_date(start_date))
    except (TypeError, ValueError) as e:
        raise InvalidDateRangeError(f"Invalid start date {start_date!r}: {e}")

    cycle = resolve_pattern(pattern, shift_types)
    make_id = id_factory or new_id

    generated = []
    for offset in range(days_to_generate):
        step = cycle[offset % len(cycle)]
        if not isinstance(step, TypeRef):
            continue
        date_str = to_iso_date(start + timedelta(days=offset))
        for employee_id in employee_ids:
            generated.append(Assignment(
                id=make_id(),
                date_str=date_str,
                employee_id=employee_id,
                shift_type_id=step.shift_type_id,
                is_locked=False
            ))

    logger.info(
        f"Generated {len(generated)} assignments from a {len(cycle)}-step pattern "
        f"over {days_to_generate} days for {len(employee_ids)} employees"
    )
    return generated


def apply_generated(store: AssignmentStore, generated: Iterable[Assignment]) -> Set[str]:
    """Write generated entries into the store, returning the dates touched.

    Cells that receive an entry are overwritten; hole days are left as they were.
    """
    by_key: Dict[tuple, List[Assignment]] = {}
    for entry in generated:
        by_key.setdefault(entry.key, []).append(entry)

    for (date_str, employee_id), entries in by_key.items():
        store.replace_entries(date_str, employee_id, entries)

    return {date_str for date_str, _ in by_key}
