"""
Dirty-Region Tracker & Sync Planner for the Duty Roster system

Schedules are persisted in month partitions. The tracker records which
months changed since the last confirmed write, and the planner turns that
into the minimal set of month chunks to send to the document store.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Set
import logging

from .date_utils import month_key
from .schedule_store import Assignment, AssignmentStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirtyRegions:
    """Drained view of the tracker: explicit months, or everything"""
    months: FrozenSet[str] = frozenset()
    all_dirty: bool = False

    def is_empty(self) -> bool:
        return not self.all_dirty and not self.months


class DirtyRegionTracker:
    """Tracks month partitions with unsynced changes"""

    def __init__(self):
        self._months: Optional[Set[str]] = set()  # None means all-dirty
        self._marked_since_drain: Set[str] = set()
        self._all_marked_since_drain = False

    @property
    def is_all_dirty(self) -> bool:
        return self._months is None

    def mark_dirty(self, date_str: str):
        self.mark_month(month_key(date_str))

    def mark_month(self, month: str):
        # Tracked while all-dirty too; confirm_synced keeps it
        self._marked_since_drain.add(month)
        if self._months is not None:
            self._months.add(month)

    def mark_dates(self, dates: Iterable[str]):
        for date_str in dates:
            self.mark_dirty(date_str)

    def mark_all_dirty(self):
        self._months = None
        self._all_marked_since_drain = True

    def drain_for_sync(self) -> DirtyRegions:
        """Current regions. Does not clear anything; see confirm_synced."""
        self._marked_since_drain = set()
        self._all_marked_since_drain = False
        if self._months is None:
            return DirtyRegions(all_dirty=True)
        return DirtyRegions(months=frozenset(self._months))

    def confirm_synced(self, regions: DirtyRegions):
        """Forget the regions of a committed batch.

        Months marked again after the drain stay dirty, so do all-dirty
        requests made after it.
        """
        if regions.all_dirty:
            if self._months is None and self._all_marked_since_drain:
                return
            # Back to explicit tracking, not re-armed to all-dirty
            self._months = set(self._marked_since_drain)
            return

        if self._months is None:
            return
        self._months -= (set(regions.months) - self._marked_since_drain)

    def dirty_months(self) -> Optional[Set[str]]:
        return None if self._months is None else set(self._months)


@dataclass
class SyncPlan:
    """Month chunks to write, plus the months that currently hold data"""
    write_units: Dict[str, List[Assignment]] = field(default_factory=dict)
    active_months: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.write_units


class SyncPlanner:
    """Builds the minimal write plan for a drained set of regions"""

    def __init__(self, persisted_months: Optional[Iterable[str]] = None):
        # Months known to exist in the remote store, so emptied months get cleared
        self.persisted_months: Set[str] = set(persisted_months or [])

    def plan(self, regions: DirtyRegions, store: AssignmentStore) -> SyncPlan:
        groups = store.group_by_month()
        active_months = sorted(groups)

        if regions.all_dirty:
            scope = set(groups) | self.persisted_months
        else:
            scope = set(regions.months)

        write_units = {month: list(groups.get(month, [])) for month in sorted(scope)}
        logger.debug(f"Sync plan covers {len(write_units)} of {len(active_months)} active months")
        return SyncPlan(write_units=write_units, active_months=active_months)

    def mark_committed(self, plan: SyncPlan):
        for month, entries in plan.write_units.items():
            if entries:
                self.persisted_months.add(month)
            else:
                self.persisted_months.discard(month)
