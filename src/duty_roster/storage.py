"""
Storage backends for the Duty Roster system

Two collaborators live here:

- PersistentStore: the document store holding the shared schedule. Settings
  (employees, shift types, active months) sit in one main document and
  assignments are partitioned into one chunk document per month.
- LocalCache: a single JSON file of whole-collection blobs, used when the
  document store is unavailable or not configured.

Both write through temp files with a .bak copy of the previous version.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
import json
import logging

from .date_utils import month_key
from .exceptions import DataFileCorruptedError, DataSaveError, StoreUnavailableError
from .schedule_store import Assignment

logger = logging.getLogger(__name__)

MAIN_DOCUMENT = "company_data.json"
SCHEDULE_COLLECTION = "schedules"

STORAGE_KEY_SCHEDULE = "schedule_v1"
STORAGE_KEY_EMPLOYEES = "employees_v1"
STORAGE_KEY_SHIFTS = "shifts_v1"
STORAGE_KEY_SETTINGS = "settings"


def read_json(path: Path) -> Any:
    """Read a JSON file, recovering from its .bak copy when the main file is bad"""
    backup_file = path.with_suffix(path.suffix + ".bak")
    try:
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
    except FileNotFoundError:
        if not backup_file.exists():
            raise
        logger.info(f"{path} missing, attempting recovery from backup {backup_file}")
    except (json.JSONDecodeError, IOError) as e:
        logger.error(f"Error loading {path}: {e}")
        if not backup_file.exists():
            raise DataFileCorruptedError(f"{path} corrupted and no backup available: {e}")
        logger.info(f"Attempting recovery from backup file {backup_file}")

    try:
        with open(backup_file, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (json.JSONDecodeError, IOError) as backup_e:
        raise DataFileCorruptedError(f"Backup file {backup_file} also corrupted: {backup_e}")
    backup_file.replace(path)
    logger.info(f"Successfully recovered {path} from backup")
    return data


def write_json(path: Path, data: Any):
    """Write JSON atomically, keeping the previous version as .bak"""
    temp_file = path.with_suffix(path.suffix + ".tmp")
    backup_file = path.with_suffix(path.suffix + ".bak")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(temp_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)
        if path.exists():
            path.replace(backup_file)
        temp_file.replace(path)
    except (IOError, OSError) as e:
        logger.error(f"I/O error writing {path}: {e}", exc_info=True)
        raise DataSaveError(f"Failed to write {path}: {e}")
    finally:
        if temp_file.exists():
            try:
                temp_file.unlink()
            except OSError as cleanup_e:
                logger.error(f"Failed to clean up temporary file {temp_file}: {cleanup_e}")


@dataclass
class StoreSnapshot:
    """What the document store returned; None means 'nothing stored, keep defaults'"""
    employees: Optional[List[Dict[str, Any]]] = None
    shifts: Optional[List[Dict[str, Any]]] = None
    assignments_by_month: Optional[Dict[str, List[Dict[str, Any]]]] = None
    active_months: List[str] = field(default_factory=list)
    legacy_months: List[str] = field(default_factory=list)  # held only by the old main-document mapping


class PersistentStore(ABC):
    """Contract of the shared document store"""

    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    def load_all(self) -> StoreSnapshot:
        ...

    @abstractmethod
    def commit(self, write_units: Dict[str, List[Assignment]], metadata: Dict[str, Any]):
        """Write month chunks and merge metadata into the main document as one batch"""
        ...


class JsonDocumentStore(PersistentStore):
    """Document store kept as JSON files under a shared directory"""

    def __init__(self, root: Optional[str]):
        self.root = Path(root) if root else None

    def is_configured(self) -> bool:
        return self.root is not None

    @property
    def main_document(self) -> Path:
        return self.root / MAIN_DOCUMENT

    def chunk_path(self, month: str) -> Path:
        return self.root / SCHEDULE_COLLECTION / f"{month}.json"

    def load_all(self) -> StoreSnapshot:
        if self.root is None:
            return StoreSnapshot()
        if self.root.exists() and not self.root.is_dir():
            raise StoreUnavailableError(f"Store root {self.root} is not a directory")

        snapshot = StoreSnapshot()
        groups: Dict[str, List[Dict[str, Any]]] = {}
        legacy_groups: Dict[str, List[Dict[str, Any]]] = {}
        chunk_months = set()

        if self.main_document.exists() or self.main_document.with_suffix(".json.bak").exists():
            data = read_json(self.main_document)
            snapshot.employees = data.get("employees")
            snapshot.shifts = data.get("shifts")
            snapshot.active_months = list(data.get("activeMonths") or [])

            # Older layout kept the whole schedule inside the main document
            legacy = data.get("schedule") or {}
            if legacy:
                logger.info("Loading legacy schedule from main document")
                try:
                    for entries in legacy.values():
                        for entry in entries:
                            legacy_groups.setdefault(month_key(entry["dateStr"]), []).append(entry)
                except (KeyError, TypeError, AttributeError) as e:
                    raise DataFileCorruptedError(f"Malformed legacy schedule in {self.main_document}: {e}")
                groups.update(legacy_groups)

        chunk_dir = self.root / SCHEDULE_COLLECTION
        if chunk_dir.is_dir():
            chunk_files = sorted(chunk_dir.glob("*.json"))
            logger.info(f"Loading {len(chunk_files)} schedule chunks")
            for chunk_file in chunk_files:
                entries = read_json(chunk_file).get("entries") or []
                groups[chunk_file.stem] = entries
                chunk_months.add(chunk_file.stem)

        snapshot.legacy_months = sorted(set(legacy_groups) - chunk_months)

        if any(groups.values()):
            snapshot.assignments_by_month = {m: e for m, e in groups.items() if e}
        return snapshot

    def commit(self, write_units: Dict[str, List[Assignment]], metadata: Dict[str, Any]):
        if self.root is None:
            raise StoreUnavailableError("Document store is not configured")

        main = {}
        if self.main_document.exists():
            main = read_json(self.main_document)
        main.update(metadata)
        main["schedule"] = {}  # keep the main document light

        for month, entries in write_units.items():
            write_json(self.chunk_path(month), {"entries": [e.to_dict() for e in entries]})
        write_json(self.main_document, main)
        logger.info(f"Data saved to store. Chunks written: {len(write_units)}")


class LocalCache:
    """Key-value JSON file holding whole collections"""

    def __init__(self, cache_file: str):
        self.cache_file = Path(cache_file)
        self._data: Optional[Dict[str, Any]] = None

    def _load(self) -> Dict[str, Any]:
        if self._data is None:
            try:
                self._data = read_json(self.cache_file)
            except FileNotFoundError:
                logger.info(f"No cache file found at {self.cache_file}, starting empty")
                self._data = {}
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any):
        self.set_many({key: value})

    def set_many(self, values: Dict[str, Any]):
        data = dict(self._load())
        data.update(values)
        write_json(self.cache_file, data)
        self._data = data
