"""
Swap/Exchange Engine for the Duty Roster system

Two-selection state machine layered over the AssignmentStore. Once two
cells are picked, one of them is designated the petitioner and the swap is
resolved either as a same-day exchange or as a cross-day transfer.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import List, Set, Tuple
import logging

from .data_manager import TRANSFER_PLACEHOLDER_ID
from .exceptions import NothingToTransferError, SwapStateError
from .schedule_store import AssignmentStore, ScheduleKey

logger = logging.getLogger(__name__)


class SwapState(Enum):
    IDLE = 0
    ONE_PICKED = 1
    READY_TO_RESOLVE = 2


class SwapKind(Enum):
    EXCHANGE = "exchange"
    TRANSFER = "transfer"


@dataclass(frozen=True)
class Selection:
    """Transient pointer to one schedule cell"""
    date_str: str
    employee_id: str

    @property
    def key(self) -> ScheduleKey:
        return (self.date_str, self.employee_id)


@dataclass
class SwapOutcome:
    """Result of a resolved swap"""
    kind: SwapKind
    petitioner: Selection
    acceptor: Selection
    moved: int

    @property
    def dates(self) -> Set[str]:
        return {self.petitioner.date_str, self.acceptor.date_str}


class SwapEngine:
    """Sliding two-cell selection window plus the swap resolution policies"""

    def __init__(self, store: AssignmentStore, placeholder_id: str = TRANSFER_PLACEHOLDER_ID):
        self.store = store
        self.placeholder_id = placeholder_id
        self._selections: List[Selection] = []

    @property
    def selections(self) -> Tuple[Selection, ...]:
        return tuple(self._selections)

    @property
    def state(self) -> SwapState:
        return SwapState(len(self._selections))

    def is_selected(self, date_str: str, employee_id: str) -> bool:
        return Selection(date_str, employee_id) in self._selections

    def select(self, date_str: str, employee_id: str) -> SwapState:
        """Pick a cell; picking a selected cell again deselects it"""
        selection = Selection(date_str, employee_id)
        if selection in self._selections:
            self._selections.remove(selection)
        elif len(self._selections) < 2:
            self._selections.append(selection)
        else:
            # Window of two: the oldest pick falls out
            self._selections = [self._selections[1], selection]
        return self.state

    def deselect(self, date_str: str, employee_id: str) -> SwapState:
        selection = Selection(date_str, employee_id)
        if selection in self._selections:
            self._selections.remove(selection)
        return self.state

    def select_only(self, date_str: str, employee_id: str):
        """Replace the selection with a single cell (edit mode)"""
        self._selections = [Selection(date_str, employee_id)]

    def cancel(self):
        self._selections = []

    def resolve(self, petitioner_index: int) -> SwapOutcome:
        """Apply the swap with selections[petitioner_index] as the petitioner.

        Raises:
            SwapStateError: fewer than two cells are selected
            NothingToTransferError: a transfer petitioner has no real shift
        """
        if self.state is not SwapState.READY_TO_RESOLVE:
            raise SwapStateError(f"Two cells must be selected, found {len(self._selections)}")
        if petitioner_index not in (0, 1):
            raise SwapStateError(f"Petitioner index must be 0 or 1, got {petitioner_index}")

        petitioner = self._selections[petitioner_index]
        acceptor = self._selections[1 - petitioner_index]

        if petitioner.date_str == acceptor.date_str:
            outcome = self._exchange(petitioner, acceptor)
        else:
            outcome = self._transfer(petitioner, acceptor)

        self._selections = []
        logger.info(
            f"Resolved {outcome.kind.value} between {petitioner.key} and {acceptor.key} "
            f"({outcome.moved} entries moved)"
        )
        return outcome

    def _exchange(self, petitioner: Selection, acceptor: Selection) -> SwapOutcome:
        entries_p = self.store.get_entries(*petitioner.key)
        entries_a = self.store.get_entries(*acceptor.key)

        new_p = [
            replace(e, date_str=petitioner.date_str, employee_id=petitioner.employee_id,
                    is_exchange=True)
            for e in entries_a
        ]
        new_a = [
            replace(e, date_str=acceptor.date_str, employee_id=acceptor.employee_id,
                    is_exchange=True)
            for e in entries_p
        ]

        self.store.replace_entries(petitioner.date_str, petitioner.employee_id, new_p)
        self.store.replace_entries(acceptor.date_str, acceptor.employee_id, new_a)
        return SwapOutcome(SwapKind.EXCHANGE, petitioner, acceptor, len(new_p) + len(new_a))

    def _transfer(self, petitioner: Selection, acceptor: Selection) -> SwapOutcome:
        entries_p = self.store.get_entries(*petitioner.key)
        entries_a = self.store.get_entries(*acceptor.key)

        # Earlier placeholders are not handed over again
        real_p = [e for e in entries_p if e.shift_type_id != self.placeholder_id]
        if not real_p:
            raise NothingToTransferError("The petitioner has no shift to transfer.")

        given = [
            replace(e, id=self.store.new_id(), date_str=acceptor.date_str,
                    employee_id=acceptor.employee_id, note="", is_swap=True)
            for e in real_p
        ]
        kept = [
            e if e.shift_type_id == self.placeholder_id
            else replace(e, shift_type_id=self.placeholder_id, is_swap=True)
            for e in entries_p
        ]

        self.store.replace_entries(acceptor.date_str, acceptor.employee_id, entries_a + given)
        self.store.replace_entries(petitioner.date_str, petitioner.employee_id, kept)
        return SwapOutcome(SwapKind.TRANSFER, petitioner, acceptor, len(given))

    def selected_entries(self, index: int = 0):
        """Entries under one selection, empty when nothing is picked there"""
        if index >= len(self._selections):
            return []
        return self.store.get_entries(*self._selections[index].key)
