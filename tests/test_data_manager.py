import pytest
import sys
from pathlib import Path
import json
import os
import tempfile
from itertools import count

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from duty_roster.data_manager import (
    DataManager,
    Employee,
    ShiftType,
    STATUS_CONNECTED,
    STATUS_ERROR,
    STATUS_OFFLINE,
    TRANSFER_PLACEHOLDER_ID,
    UNKNOWN_EMPLOYEE,
    UNKNOWN_SHIFT_CODE,
)
from duty_roster.exceptions import DataFileCorruptedError, DataValidationError, StoreUnavailableError
from duty_roster.storage import (
    JsonDocumentStore,
    LocalCache,
    PersistentStore,
    StoreSnapshot,
    read_json,
    write_json,
)


class RecordingStore(PersistentStore):
    """In-memory store that records commits and can be told to fail"""

    def __init__(self, snapshot=None):
        self.snapshot = snapshot or StoreSnapshot()
        self.commits = []
        self.fail_commit = False
        self.fail_load = False

    def is_configured(self):
        return True

    def load_all(self):
        if self.fail_load:
            raise StoreUnavailableError("store unreachable")
        return self.snapshot

    def commit(self, write_units, metadata):
        if self.fail_commit:
            raise StoreUnavailableError("write rejected")
        self.commits.append((dict(write_units), metadata))


@pytest.fixture
def temp_dir():
    with tempfile.TemporaryDirectory() as temp_path:
        yield Path(temp_path)


@pytest.fixture
def cache(temp_dir):
    return LocalCache(str(temp_dir / "cache.json"))


def make_manager(cache, remote=None):
    ids = count(1)
    return DataManager(cache, remote, id_factory=lambda: f"id{next(ids)}")


def test_offline_load_uses_defaults(cache):
    dm = make_manager(cache)
    dm.load()

    assert dm.status == STATUS_OFFLINE
    assert len(dm.get_employees()) == 14
    assert dm.get_shift_by_id(TRANSFER_PLACEHOLDER_ID) is not None
    assert dm.schedule.is_empty()


def test_local_save_and_reload(cache, temp_dir):
    dm = make_manager(cache)
    dm.load()
    dm.schedule.add_assignment("2024-01-01", "1", "09-17", note="Tribunal")
    dm.add_employee("NOVO", "PATRULHA", "NV")
    assert dm.save()

    reloaded = make_manager(LocalCache(str(temp_dir / "cache.json")))
    reloaded.load()

    entries = reloaded.schedule.get_entries("2024-01-01", "1")
    assert [(e.shift_type_id, e.note) for e in entries] == [("09-17", "Tribunal")]
    assert reloaded.get_employees()[-1].name == "NOVO"


def test_remote_save_writes_only_dirty_months(cache):
    """
    Why this is important: editing one day must not rewrite every month of
    the shared schedule.
    """
    remote = RecordingStore(StoreSnapshot(
        assignments_by_month={
            "2024-01": [{"id": "a", "dateStr": "2024-01-03", "employeeId": "1", "shiftTypeId": "trib"}],
            "2024-02": [{"id": "b", "dateStr": "2024-02-03", "employeeId": "1", "shiftTypeId": "trib"}],
        },
        active_months=["2024-01", "2024-02"],
    ))
    dm = make_manager(cache, remote)
    dm.load()
    assert dm.status == STATUS_CONNECTED
    assert len(dm.schedule) == 2

    dm.schedule.add_assignment("2024-02-10", "2", "09-17")
    dm.dirty.mark_dirty("2024-02-10")
    assert dm.save()

    write_units, metadata = remote.commits[-1]
    assert list(write_units) == ["2024-02"]
    assert len(write_units["2024-02"]) == 2
    assert metadata["activeMonths"] == ["2024-01", "2024-02"]
    assert "lastUpdated" in metadata
    assert dm.dirty.dirty_months() == set()


def test_failed_commit_keeps_dirty_regions(cache):
    remote = RecordingStore()
    dm = make_manager(cache, remote)
    dm.load()
    dm.schedule.add_assignment("2024-05-01", "1", "09-17")
    dm.dirty.mark_dirty("2024-05-01")

    remote.fail_commit = True
    assert dm.save() is False
    assert dm.status == STATUS_ERROR
    assert dm.dirty.dirty_months() == {"2024-05"}
    assert len(dm.schedule) == 1

    remote.fail_commit = False
    assert dm.save()
    assert list(remote.commits[-1][0]) == ["2024-05"]
    assert dm.status == STATUS_CONNECTED


def test_empty_state_is_never_written(cache):
    remote = RecordingStore()
    dm = make_manager(cache, remote)
    dm.load()
    dm.employees = []
    dm.dirty.mark_all_dirty()

    assert dm.save() is False
    assert remote.commits == []


def test_remote_load_failure_falls_back_to_cache(cache):
    cache.set("employees_v1", [{"id": "x", "name": "LOCAL", "role": "R", "initials": "LO"}])
    remote = RecordingStore()
    remote.fail_load = True

    dm = make_manager(cache, remote)
    dm.load()

    assert dm.status == STATUS_ERROR
    assert not dm.has_loaded_remote
    assert [e.name for e in dm.get_employees()] == ["LOCAL"]

    # Without a successful remote load, saves go to the local cache only
    assert dm.save()
    assert remote.commits == []


def test_malformed_snapshot_falls_back(cache):
    remote = RecordingStore(StoreSnapshot(employees=[{"name": "missing id"}]))
    dm = make_manager(cache, remote)
    dm.load()

    assert dm.status == STATUS_ERROR
    assert len(dm.get_employees()) == 14


def test_stored_shift_catalog_gains_missing_defaults(cache):
    remote = RecordingStore(StoreSnapshot(
        shifts=[{"id": "custom", "code": "CUS", "label": "Custom", "color": "#000000", "textColor": "#FFFFFF"}]
    ))
    dm = make_manager(cache, remote)
    dm.load()

    ids = [s.id for s in dm.get_shift_types()]
    assert ids[0] == "custom"
    assert "folga" in ids
    assert TRANSFER_PLACEHOLDER_ID in ids


def test_document_store_round_trip(cache, temp_dir):
    store_dir = temp_dir / "shared"
    dm = make_manager(cache, JsonDocumentStore(str(store_dir)))
    dm.load()
    dm.schedule.add_assignment("2024-01-01", "1", "09-17")
    dm.schedule.add_assignment("2024-02-01", "2", "trib")
    dm.dirty.mark_dates(["2024-01-01", "2024-02-01"])
    assert dm.save()

    assert (store_dir / "schedules" / "2024-01.json").exists()
    main = read_json(store_dir / "company_data.json")
    assert main["schedule"] == {}
    assert main["activeMonths"] == ["2024-01", "2024-02"]

    reloaded = make_manager(LocalCache(str(temp_dir / "other.json")), JsonDocumentStore(str(store_dir)))
    reloaded.load()
    assert len(reloaded.schedule) == 2
    assert reloaded.get_shift_code("trib") == "TRIB"


def test_deletions_propagate_after_clear(cache, temp_dir):
    store_dir = temp_dir / "shared"
    dm = make_manager(cache, JsonDocumentStore(str(store_dir)))
    dm.load()
    dm.schedule.add_assignment("2024-01-01", "1", "09-17")
    dm.dirty.mark_dirty("2024-01-01")
    assert dm.save()

    dm.schedule._clear_all()
    dm.dirty.mark_all_dirty()
    assert dm.save()

    chunk = read_json(store_dir / "schedules" / "2024-01.json")
    assert chunk["entries"] == []

    reloaded = make_manager(LocalCache(str(temp_dir / "other.json")), JsonDocumentStore(str(store_dir)))
    reloaded.load()
    assert reloaded.schedule.is_empty()


def test_legacy_schedule_in_main_document(cache, temp_dir):
    store_dir = temp_dir / "shared"
    write_json(store_dir / "company_data.json", {
        "schedule": {
            "2023-12-24_1": [{"id": "old", "dateStr": "2023-12-24", "employeeId": "1", "shiftTypeId": "trib"}]
        }
    })

    dm = make_manager(cache, JsonDocumentStore(str(store_dir)))
    dm.load()

    assert [e.id for e in dm.schedule.get_entries("2023-12-24", "1")] == ["old"]
    assert dm.planner.persisted_months == {"2023-12"}
    assert dm.dirty.dirty_months() == {"2023-12"}


def test_legacy_months_survive_first_partial_save(cache, temp_dir):
    """
    Why this is important: saving empties the old schedule mapping in the main
    document, so months only held there must be rewritten as chunks first.
    """
    store_dir = temp_dir / "shared"
    write_json(store_dir / "company_data.json", {
        "schedule": {
            "2023-12-24_1": [{"id": "old", "dateStr": "2023-12-24", "employeeId": "1", "shiftTypeId": "trib"}],
            "2024-01-02_2": [{"id": "stale", "dateStr": "2024-01-02", "employeeId": "2", "shiftTypeId": "trib"}]
        }
    })
    # A chunk already exists for January, so only December needs migrating
    write_json(store_dir / "schedules" / "2024-01.json", {"entries": [
        {"id": "new", "dateStr": "2024-01-03", "employeeId": "2", "shiftTypeId": "radar"}
    ]})

    dm = make_manager(cache, JsonDocumentStore(str(store_dir)))
    dm.load()
    assert dm.dirty.dirty_months() == {"2023-12"}

    dm.schedule.add_assignment("2024-03-01", "3", "09-17")
    dm.dirty.mark_dirty("2024-03-01")
    assert dm.save()

    assert read_json(store_dir / "company_data.json")["schedule"] == {}
    reloaded = make_manager(LocalCache(str(temp_dir / "other.json")), JsonDocumentStore(str(store_dir)))
    reloaded.load()

    assert [e.id for e in reloaded.schedule.get_entries("2023-12-24", "1")] == ["old"]
    assert reloaded.schedule.get_entries("2024-01-02", "2") == []
    assert [e.id for e in reloaded.schedule.get_entries("2024-01-03", "2")] == ["new"]
    assert len(reloaded.schedule.get_entries("2024-03-01", "3")) == 1
    assert reloaded.dirty.dirty_months() == set()


def test_corrupted_file_recovers_from_backup(temp_dir):
    path = temp_dir / "cache.json"
    write_json(path, {"settings": {"a": 1}})
    write_json(path, {"settings": {"a": 2}})  # first version moves to .bak
    path.write_text("{not json", encoding="utf-8")

    assert read_json(path) == {"settings": {"a": 1}}
    assert json.loads(path.read_text(encoding="utf-8")) == {"settings": {"a": 1}}


def test_corrupted_file_without_backup(temp_dir):
    path = temp_dir / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(DataFileCorruptedError):
        read_json(path)


def test_employee_crud(cache):
    dm = make_manager(cache)
    dm.load()

    emp = dm.add_employee("NOVO", "PATRULHA", "NV")
    assert dm.get_employee_by_id(emp.id) == emp

    dm.save_employee(Employee(emp.id, "NOVO II", "PATRULHA", "N2"))
    assert dm.get_employee_display_name(emp.id) == "NOVO II"

    with pytest.raises(DataValidationError):
        dm.save_employee(Employee("z", "", "ROLE", "ZZ"))

    dm.schedule.add_assignment("2024-01-01", emp.id, "09-17")
    assert dm.delete_employee(emp.id)
    assert dm.get_employee_display_name(emp.id) == UNKNOWN_EMPLOYEE
    assert len(dm.schedule.get_entries("2024-01-01", emp.id)) == 1


def test_move_employee(cache):
    dm = make_manager(cache)
    dm.load()
    first = dm.get_employees()[0]

    dm.move_employee(0, 2)
    assert dm.get_employees()[2] == first
    dm.move_employee(99, 0)  # out of range is ignored
    assert dm.get_employees()[2] == first


def test_shift_type_crud(cache):
    dm = make_manager(cache)
    dm.load()

    shift = dm.add_shift_type("PAT", "Patrulha")
    assert dm.get_shift_code(shift.id) == "PAT"

    dm.save_shift_type(ShiftType(shift.id, "PAT2", "Patrulha", "#FFFFFF", "#000000"))
    assert dm.get_shift_code(shift.id) == "PAT2"

    assert dm.delete_shift_type(shift.id)
    assert dm.get_shift_code(shift.id) == UNKNOWN_SHIFT_CODE
    assert not dm.delete_shift_type(shift.id)

    codes = [s.code for s in dm.get_shift_types(sort_by_code=True)]
    assert codes == sorted(codes)


def test_settings(cache):
    dm = make_manager(cache)
    assert dm.get_setting("lastUsedMonth") is None

    dm.set_setting("lastUsedMonth", "2024-06")
    assert dm.get_setting("lastUsedMonth") == "2024-06"
    assert dm.get_setting("appVersion") == "1.0.0"
    assert os.path.exists(cache.cache_file)
