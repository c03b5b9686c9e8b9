"""
Data Manager for the Duty Roster system

Owns the session state (employee and shift type catalogs, the assignment
store, the dirty-region tracker) and moves it between memory, the shared
document store and the local fallback cache.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence
from dataclasses import dataclass
from uuid import uuid4
import logging

from .exceptions import DataFileCorruptedError, DataManagerError, DataValidationError
from .schedule_store import Assignment, AssignmentStore
from .storage import (
    LocalCache,
    PersistentStore,
    STORAGE_KEY_EMPLOYEES,
    STORAGE_KEY_SCHEDULE,
    STORAGE_KEY_SETTINGS,
    STORAGE_KEY_SHIFTS,
)
from .sync import DirtyRegionTracker, SyncPlanner

logger = logging.getLogger(__name__)

APP_VERSION = "1.0.0"

OFF_DAY_SHIFT_ID = "folga"
OFF_DAY_SHIFT_CODE = "FOLGA"
TRANSFER_PLACEHOLDER_ID = "folga_troca"

UNKNOWN_EMPLOYEE = "Unknown"
UNKNOWN_SHIFT_CODE = "?"

STATUS_CONNECTED = "connected"
STATUS_OFFLINE = "offline"
STATUS_ERROR = "error"


@dataclass
class Employee:
    """Employee data structure"""
    id: str
    name: str
    role: str
    initials: str  # short badge code

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "initials": self.initials
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Employee':
        return cls(
            id=str(data["id"]),
            name=data["name"],
            role=data.get("role", ""),
            initials=data.get("initials", "")
        )


@dataclass
class ShiftType:
    """Shift type with its display code and colors"""
    id: str
    code: str  # short code for display, e.g. "09:00-17:00" or "FOLGA"
    label: str
    color: str  # background, hex
    text_color: str  # foreground, hex
    is_off_day: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "label": self.label,
            "color": self.color,
            "textColor": self.text_color,
            "isOffDay": self.is_off_day
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShiftType':
        return cls(
            id=data["id"],
            code=data["code"],
            label=data.get("label", ""),
            color=data.get("color", "#FFFFFF"),
            text_color=data.get("textColor", "#1E293B"),
            is_off_day=bool(data.get("isOffDay", False))
        )


INITIAL_EMPLOYEES = [
    Employee("1", "PAIS", "CMDT", "PA"),
    Employee("2", "PISCO", "SVISOR", "PI"),
    Employee("3", "ELZO", "SVISOR", "EL"),
    Employee("4", "PINA", "ESCRIT.", "PN"),
    Employee("5", "SERRÃO", "FISCALIZAÇÃO", "SE"),
    Employee("6", "BORBINHA", "FISCALIZAÇÃO", "BO"),
    Employee("7", "RAMINHOS", "FISCALIZAÇÃO", "RA"),
    Employee("8", "TEIXEIRA", "MOTOCICLOS", "TE"),
    Employee("9", "SILVA", "MOTOCICLOS", "SI"),
    Employee("10", "BEJA", "MOTOCICLOS", "BE"),
    Employee("11", "TOMÁS", "MOTOCICLOS", "TO"),
    Employee("12", "DIAS", "MOTOCICLOS", "DI"),
    Employee("13", "LINO", "MOTOCICLOS", "LI"),
    Employee("14", "NABAIS", "PARQUE 1", "NA"),
]

_WHITE, _SLATE, _BLACK = "#FFFFFF", "#1E293B", "#000000"

SHIFT_TYPES = [
    ShiftType(OFF_DAY_SHIFT_ID, OFF_DAY_SHIFT_CODE, "Folga Semanal", "#FDE047", _BLACK, True),
    ShiftType("00-0815", "00:00-08:15", "Noite", _WHITE, _SLATE),
    ShiftType("0745-1645", "07:45-16:45", "Dia", _WHITE, _SLATE),
    ShiftType("0745-1630", "07:45-16:30", "Dia", _WHITE, _SLATE),
    ShiftType("0745-1615", "07:45-16:15", "Dia", _WHITE, _SLATE),
    ShiftType("0800-1600", "08:00-16:00", "Dia", _WHITE, _SLATE),
    ShiftType("08-15", "08:00-15:00", "Dia", _WHITE, _SLATE),
    ShiftType("09-1730", "09:00-17:30", "Dia", _WHITE, _SLATE),
    ShiftType("09-17", "09:00-17:00", "Dia", _WHITE, _SLATE),
    ShiftType("13-20", "13:00-20:00", "Tarde", _WHITE, _SLATE),
    ShiftType("1545-00", "15:45-00:00", "Tarde/Noite", _WHITE, _SLATE),
    ShiftType("16-00", "16:00-00:00", "Tarde/Noite", _WHITE, _SLATE),
    ShiftType("acidentes", "ACIDENTES", "Piquete Acidentes", "#EF4444", _WHITE),
    ShiftType("radar", "RADAR", "Fiscalização Radar", "#FB923C", _BLACK),
    ShiftType("trib", "TRIB", "Tribunal", "#D8B4FE", _BLACK),
    ShiftType("exc", "EXC", "Excecional", "#60A5FA", _WHITE),
    ShiftType("balancas", "BALANÇAS", "Pesagem", "#FBBF24", _BLACK),
    ShiftType(TRANSFER_PLACEHOLDER_ID, "FOLGA P/T", "Folga por Troca", "#9CA3AF", _WHITE, True),
]


def default_employees() -> List[Employee]:
    return [Employee(**vars(emp)) for emp in INITIAL_EMPLOYEES]


def default_shift_types() -> List[ShiftType]:
    return [ShiftType(**vars(shift)) for shift in SHIFT_TYPES]


def find_off_day_shift(shift_types: Sequence[ShiftType]) -> Optional[ShiftType]:
    """The canonical weekly off-day type, if the catalog has one"""
    for shift in shift_types:
        if shift.id == OFF_DAY_SHIFT_ID or shift.code.upper() == OFF_DAY_SHIFT_CODE:
            return shift
    return None


def merge_shift_types(loaded: Sequence[ShiftType]) -> List[ShiftType]:
    """Stored types first, then any default type the stored catalog lacks"""
    merged = list(loaded)
    known = {shift.id for shift in merged}
    for default in default_shift_types():
        if default.id not in known:
            merged.append(default)
    return merged


class DataManager:
    """Manages session state, catalog CRUD and persistence"""

    def __init__(self, local_cache: LocalCache, remote: Optional[PersistentStore] = None,
                 id_factory: Optional[Callable[[], str]] = None):
        self.local_cache = local_cache
        self.remote = remote
        self.id_factory = id_factory or (lambda: str(uuid4()))

        self.employees: List[Employee] = default_employees()
        self.shift_types: List[ShiftType] = default_shift_types()
        self.schedule = AssignmentStore(self.id_factory)
        self.dirty = DirtyRegionTracker()
        self.planner = SyncPlanner()

        self.status = STATUS_OFFLINE
        self.has_loaded_remote = False

    @property
    def remote_configured(self) -> bool:
        return self.remote is not None and self.remote.is_configured()

    # Loading
    def load(self):
        """Load from the document store, falling back to the local cache"""
        migrate_months = []
        if self.remote_configured:
            try:
                snapshot = self.remote.load_all()
                self._apply_snapshot(snapshot)
            except (DataManagerError, OSError) as e:
                logger.error(f"Failed to load from document store: {e}", exc_info=True)
                self.status = STATUS_ERROR
                self._load_local()
            else:
                self.status = STATUS_CONNECTED
                self.has_loaded_remote = True
                logger.info(f"Loaded {len(self.schedule)} schedule cells from document store")
                migrate_months = snapshot.legacy_months
        else:
            logger.info("Document store not configured, using local cache")
            self.status = STATUS_OFFLINE
            self._load_local()

        self.dirty = DirtyRegionTracker()
        for month in migrate_months:
            # Rewrite old-layout months as chunks on the next save
            self.dirty.mark_month(month)
        if migrate_months:
            logger.info(f"Migrating {len(migrate_months)} legacy months to chunks on next save")

    def _apply_snapshot(self, snapshot):
        try:
            employees = ([Employee.from_dict(e) for e in snapshot.employees]
                         if snapshot.employees else default_employees())
            shift_types = (merge_shift_types([ShiftType.from_dict(s) for s in snapshot.shifts])
                           if snapshot.shifts else default_shift_types())
            entries = [
                Assignment.from_dict(item)
                for items in (snapshot.assignments_by_month or {}).values()
                for item in items
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise DataFileCorruptedError(f"Malformed document store data: {e}")

        self.employees = employees
        self.shift_types = shift_types
        self.schedule.load_entries(entries)
        self.planner = SyncPlanner(set(snapshot.active_months) | set(snapshot.assignments_by_month or {}))

    def _load_local(self):
        try:
            saved_employees = self.local_cache.get(STORAGE_KEY_EMPLOYEES)
            if saved_employees:
                self.employees = [Employee.from_dict(e) for e in saved_employees]

            saved_shifts = self.local_cache.get(STORAGE_KEY_SHIFTS)
            if saved_shifts:
                self.shift_types = merge_shift_types([ShiftType.from_dict(s) for s in saved_shifts])
            else:
                self.shift_types = default_shift_types()

            saved_schedule = self.local_cache.get(STORAGE_KEY_SCHEDULE)
            if saved_schedule:
                self.schedule.load_entries(
                    Assignment.from_dict(item) for items in saved_schedule.values() for item in items
                )
        except (DataManagerError, KeyError, TypeError, ValueError) as e:
            logger.error(f"Local load error: {e}", exc_info=True)

    # Saving
    def save(self) -> bool:
        """Persist pending changes. Callers debounce; this runs one sync attempt."""
        if self.remote_configured and self.has_loaded_remote:
            return self._save_remote()
        return self._save_local()

    def _save_remote(self) -> bool:
        if self.schedule.is_empty() and not self.employees:
            logger.warning("Attempted to save empty state to document store. Aborting to protect data.")
            return False

        regions = self.dirty.drain_for_sync()
        plan = self.planner.plan(regions, self.schedule)
        metadata = {
            "employees": [e.to_dict() for e in self.employees],
            "shifts": [s.to_dict() for s in self.shift_types],
            "activeMonths": plan.active_months,
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
        }

        try:
            self.remote.commit(plan.write_units, metadata)
        except (DataManagerError, OSError) as e:
            # In-memory state and dirty regions stay as they are for the next attempt
            logger.error(f"Document store save failed: {e}", exc_info=True)
            self.status = STATUS_ERROR
            return False

        self.dirty.confirm_synced(regions)
        self.planner.mark_committed(plan)
        self.status = STATUS_CONNECTED
        return True

    def _save_local(self) -> bool:
        try:
            self.local_cache.set_many({
                STORAGE_KEY_EMPLOYEES: [e.to_dict() for e in self.employees],
                STORAGE_KEY_SHIFTS: [s.to_dict() for s in self.shift_types],
                STORAGE_KEY_SCHEDULE: self.schedule.to_dict(),
            })
        except DataManagerError as e:
            logger.error(f"Local save failed: {e}", exc_info=True)
            self.status = STATUS_ERROR
            return False
        return True

    # Employee Management
    def get_employees(self) -> List[Employee]:
        return list(self.employees)

    def get_employee_by_id(self, emp_id: str) -> Optional[Employee]:
        for emp in self.employees:
            if emp.id == emp_id:
                return emp
        return None

    def get_employee_display_name(self, emp_id: str) -> str:
        emp = self.get_employee_by_id(emp_id)
        return emp.name if emp else UNKNOWN_EMPLOYEE

    def add_employee(self, name: str, role: str, initials: str) -> Employee:
        """Add new employee with a generated id"""
        employee = Employee(id=self.id_factory(), name=name, role=role, initials=initials)
        self.save_employee(employee)
        return employee

    def save_employee(self, employee: Employee):
        """Insert or update an employee"""
        if not (employee.name and employee.role and employee.initials and employee.id):
            raise DataValidationError("Employee name, role and initials are required")

        for index, emp in enumerate(self.employees):
            if emp.id == employee.id:
                self.employees[index] = employee
                return
        self.employees.append(employee)

    def delete_employee(self, emp_id: str) -> bool:
        """Remove from the catalog. Existing assignments are kept as orphans."""
        before = len(self.employees)
        self.employees = [emp for emp in self.employees if emp.id != emp_id]
        return len(self.employees) != before

    def move_employee(self, from_index: int, to_index: int):
        """Reorder the catalog (row order of the grid and exports)"""
        if not 0 <= from_index < len(self.employees):
            return
        moved = self.employees.pop(from_index)
        self.employees.insert(max(0, min(to_index, len(self.employees))), moved)

    # Shift Type Management
    def get_shift_types(self, sort_by_code: bool = False) -> List[ShiftType]:
        if sort_by_code:
            return sorted(self.shift_types, key=lambda s: s.code)
        return list(self.shift_types)

    def get_shift_by_id(self, shift_id: str) -> Optional[ShiftType]:
        for shift in self.shift_types:
            if shift.id == shift_id:
                return shift
        return None

    def get_shift_code(self, shift_id: str) -> str:
        shift = self.get_shift_by_id(shift_id)
        return shift.code if shift else UNKNOWN_SHIFT_CODE

    def add_shift_type(self, code: str, label: str, color: str = _WHITE,
                       text_color: str = _SLATE, is_off_day: bool = False) -> ShiftType:
        shift = ShiftType(self.id_factory(), code, label, color, text_color, is_off_day)
        self.save_shift_type(shift)
        return shift

    def save_shift_type(self, shift: ShiftType):
        """Insert or update a shift type"""
        if not (shift.id and shift.code and shift.label):
            raise DataValidationError("Shift type code and label are required")

        for index, existing in enumerate(self.shift_types):
            if existing.id == shift.id:
                self.shift_types[index] = shift
                return
        self.shift_types.append(shift)

    def delete_shift_type(self, shift_id: str) -> bool:
        """Remove from the catalog. Assignments keep the now unresolved id."""
        before = len(self.shift_types)
        self.shift_types = [s for s in self.shift_types if s.id != shift_id]
        return len(self.shift_types) != before

    # Settings Management
    def get_setting(self, key: str, default=None):
        """Get application setting"""
        return self.local_cache.get(STORAGE_KEY_SETTINGS, {}).get(key, default)

    def set_setting(self, key: str, value):
        """Set application setting"""
        settings = dict(self.local_cache.get(STORAGE_KEY_SETTINGS, {}))
        settings.setdefault("appVersion", APP_VERSION)
        settings[key] = value
        self.local_cache.set(STORAGE_KEY_SETTINGS, settings)
