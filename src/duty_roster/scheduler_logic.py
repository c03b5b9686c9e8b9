"""
Scheduler Logic for the Duty Roster system

ShiftScheduler is the public entry point for schedule mutations. Each
operation takes explicit cells, applies the change to the assignment
store, reports the touched dates to the dirty-region tracker and writes an
audit line. Day paste and clear-all only run through the
DestructiveOperationGuard.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence
import hmac
import logging

from .audit import AuditAction, AuditSink, HistoryLog, NullAuditSink
from .data_manager import DataManager
from .date_utils import parse_iso_date, to_iso_date
from .exceptions import IncorrectSecretError, InvalidDateRangeError
from .pattern_service import apply_generated, generate_pattern_schedule
from .schedule_store import Assignment, DaySnapshot
from .swap_engine import SwapEngine, SwapKind, SwapOutcome, SwapState

logger = logging.getLogger(__name__)


class AppMode(Enum):
    VIEW = "VIEW"
    EDIT = "EDIT"
    SWAP = "SWAP"  # clicks pick the two cells of a swap


@dataclass
class GenerationResult:
    """Result of a pattern generation"""
    generated: List[Assignment] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)
    message: str = ""


class DestructiveOperationGuard:
    """Confirmation gate for day paste and clear-all.

    `confirm` shows a yes/no question; `secret_prompt` asks for the shared
    clear-all password and returns None when the user cancels.
    """

    def __init__(self, confirm: Callable[[str], bool],
                 secret_prompt: Optional[Callable[[str], Optional[str]]] = None,
                 clear_secret: Optional[str] = None):
        self.confirm = confirm
        self.secret_prompt = secret_prompt
        self.clear_secret = clear_secret

    def confirm_paste(self, source_date: str, target_date: str) -> bool:
        return bool(self.confirm(f"Replace the schedule of {target_date} with the one from {source_date}?"))

    def authorize_clear_all(self) -> bool:
        if not self.clear_secret or self.secret_prompt is None:
            logger.warning("Clear-all requested but no clear secret is configured")
            return False

        password = self.secret_prompt("To clear the schedule, enter the password:")
        if password is None:
            return False
        if not hmac.compare_digest(password.encode(), self.clear_secret.encode()):
            logger.warning("Clear-all rejected: incorrect password")
            raise IncorrectSecretError("Incorrect password.")

        return bool(self.confirm(
            "Are you sure you want to clear the whole schedule? "
            "This cannot be undone and affects every user."
        ))


class ShiftScheduler:
    """Main controller over the assignment store"""

    def __init__(self, data_manager: DataManager, guard: DestructiveOperationGuard,
                 audit: Optional[AuditSink] = None, actor: str = ""):
        self.data_manager = data_manager
        self.guard = guard
        self.audit = audit or NullAuditSink()
        self.actor = actor

        self.mode = AppMode.VIEW
        self.swap_engine = SwapEngine(data_manager.schedule)
        self.clipboard: Optional[DaySnapshot] = None

    @property
    def store(self):
        return self.data_manager.schedule

    # Selection
    def click_cell(self, date_str: str, employee_id: str):
        """Single selection in VIEW/EDIT, toggle into the swap window in SWAP"""
        if self.mode is AppMode.SWAP:
            self.swap_engine.select(date_str, employee_id)
        else:
            self.swap_engine.select_only(date_str, employee_id)
            self.mode = AppMode.EDIT

    def enter_swap_mode(self):
        self.swap_engine.cancel()
        self.mode = AppMode.SWAP

    def cancel_swap(self):
        self.swap_engine.cancel()
        self.mode = AppMode.VIEW

    def active_entries(self) -> List[Assignment]:
        """Entries of the cell being edited; empty unless exactly one cell is selected"""
        if self.swap_engine.state is not SwapState.ONE_PICKED:
            return []
        return self.swap_engine.selected_entries(0)

    def _selected_cell(self, date_str: Optional[str], employee_id: Optional[str]):
        if date_str and employee_id:
            return date_str, employee_id
        selections = self.swap_engine.selections
        if len(selections) != 1:
            return None
        return selections[0].key

    # Direct edits
    def add_shift(self, shift_id: str, note: Optional[str] = None,
                  date_str: Optional[str] = None,
                  employee_id: Optional[str] = None) -> Optional[Assignment]:
        """Add a shift to the given cell, or to the selected one"""
        cell = self._selected_cell(date_str, employee_id)
        if cell is None:
            return None
        date_str, employee_id = cell

        entry = self.store.add_assignment(date_str, employee_id, shift_id, note)
        details = (f"Assigned {self.data_manager.get_shift_code(shift_id)} to "
                   f"{self.data_manager.get_employee_display_name(employee_id)} on {date_str}")
        if note:
            details += f" ({note})"
        self._record(AuditAction.CREATE, details)
        self.data_manager.dirty.mark_dirty(date_str)
        return entry

    def remove_entry(self, entry_id: str, date_str: Optional[str] = None,
                     employee_id: Optional[str] = None) -> bool:
        """Remove an entry from the given cell, or from the selected one"""
        cell = self._selected_cell(date_str, employee_id)
        if cell is None:
            return False
        date_str, employee_id = cell

        removed = self.store.remove_assignment(entry_id, date_str, employee_id)
        if removed is None:
            return False
        self._record(
            AuditAction.DELETE,
            f"Removed shift of {self.data_manager.get_employee_display_name(employee_id)} on {date_str}"
        )
        self.data_manager.dirty.mark_dirty(date_str)
        return True

    def copy_day(self, date_str: str) -> DaySnapshot:
        self.clipboard = self.store.copy_day(date_str)
        return self.clipboard

    def paste_day(self, target_date: str) -> bool:
        """Replace target_date with the clipboard day once the user confirms"""
        if self.clipboard is None:
            return False
        if not self.guard.confirm_paste(self.clipboard.date_str, target_date):
            return False

        self.store._paste_day(self.clipboard, target_date)
        self._record(AuditAction.UPDATE, f"Pasted schedule of {self.clipboard.date_str} into {target_date}")
        self.data_manager.dirty.mark_dirty(target_date)
        return True

    def clear_schedule(self) -> bool:
        """Empty the whole schedule behind the password and confirmation gate"""
        if not self.guard.authorize_clear_all():
            return False

        dropped = self.store._clear_all()
        logger.info(f"Cleared schedule ({dropped} cells)")
        self._record(AuditAction.CLEAR, "Cleared the whole schedule")
        self.data_manager.dirty.mark_all_dirty()
        return True

    # Generation
    def generate_schedule(self, employee_ids: Sequence[str], start_date: str,
                          days_to_generate: int, pattern: str) -> GenerationResult:
        """Expand a pattern over the range and write it into the schedule.

        Only ids present in the employee catalog are targeted. Validation
        errors are raised before the schedule is touched.
        """
        known = {emp.id for emp in self.data_manager.employees}
        targets = [emp_id for emp_id in employee_ids if emp_id in known]

        generated = generate_pattern_schedule(
            targets, start_date, days_to_generate,
            self.data_manager.shift_types, pattern,
            id_factory=self.store.new_id
        )
        dates = sorted(apply_generated(self.store, generated))
        self.data_manager.dirty.mark_dates(dates)

        start_str = to_iso_date(start_date)
        self._record(
            AuditAction.GENERATE,
            f"Generated schedule from {start_str} for {days_to_generate} days with pattern {pattern}"
        )
        return GenerationResult(
            generated=generated,
            dates=dates,
            message=f"Generated {len(generated)} shifts on {len(dates)} days"
        )

    def generate_schedule_between(self, employee_ids: Sequence[str], start_date: str,
                                  end_date: str, pattern: str) -> GenerationResult:
        """Generate over an inclusive start/end range"""
        try:
            start = parse_iso_date(to_iso_date(start_date))
            end = parse_iso_date(to_iso_date(end_date))
        except (TypeError, ValueError) as e:
            raise InvalidDateRangeError(f"Invalid date range: {e}")
        if end < start:
            raise InvalidDateRangeError("The end date must not be before the start date.")

        return self.generate_schedule(employee_ids, start_date, (end - start).days + 1, pattern)

    # Swaps
    def execute_swap(self, petitioner_index: int) -> SwapOutcome:
        """Resolve the two selected cells with selections[petitioner_index] as petitioner"""
        outcome = self.swap_engine.resolve(petitioner_index)

        petitioner, acceptor = outcome.petitioner, outcome.acceptor
        label = "Exchange" if outcome.kind is SwapKind.EXCHANGE else "Swap"
        self._record(
            AuditAction.SWAP,
            f"{label} between {self.data_manager.get_employee_display_name(petitioner.employee_id)} "
            f"({petitioner.date_str}) and "
            f"{self.data_manager.get_employee_display_name(acceptor.employee_id)} ({acceptor.date_str})"
        )
        self.data_manager.dirty.mark_dates(outcome.dates)
        self.mode = AppMode.VIEW
        return outcome

    # Persistence and history
    def save(self) -> bool:
        return self.data_manager.save()

    def get_history_logs(self, limit: int = 50) -> List[HistoryLog]:
        return self.audit.get_history_logs(limit)

    def _record(self, action: AuditAction, details: str):
        self.audit.record(action, details, self.actor)
