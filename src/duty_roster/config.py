"""
Configuration and bootstrap for the Duty Roster system

Paths, the clear-all secret and the acting user come from DUTY_ROSTER_*
environment variables. create_scheduler wires the data manager, the
storage backends, the audit sink and the controller together.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional
import logging
import os
import sys

from .audit import AuditSink, JsonHistorySink, NullAuditSink
from .data_manager import DataManager
from .scheduler_logic import DestructiveOperationGuard, ShiftScheduler
from .storage import JsonDocumentStore, LocalCache

ENV_PREFIX = "DUTY_ROSTER_"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@dataclass
class AppConfig:
    data_dir: Path
    cache_file: Path
    store_dir: Optional[Path] = None  # None keeps the app on the local cache
    clear_secret: Optional[str] = None
    log_dir: Path = Path("logs")
    actor: str = ""

    @classmethod
    def from_env(cls, environ=None) -> 'AppConfig':
        env = os.environ if environ is None else environ

        data_dir = Path(env.get(f"{ENV_PREFIX}DATA_DIR", "data")).expanduser()
        cache_file = env.get(f"{ENV_PREFIX}CACHE_FILE")
        store_dir = env.get(f"{ENV_PREFIX}STORE_DIR", "").strip()

        return cls(
            data_dir=data_dir,
            cache_file=Path(cache_file) if cache_file else data_dir / "roster_cache.json",
            store_dir=Path(store_dir).expanduser() if store_dir else None,
            clear_secret=env.get(f"{ENV_PREFIX}CLEAR_SECRET") or None,
            log_dir=Path(env.get(f"{ENV_PREFIX}LOG_DIR", "logs")),
            actor=env.get(f"{ENV_PREFIX}ACTOR", ""),
        )

    @property
    def history_file(self) -> Optional[Path]:
        if self.store_dir is None:
            return None
        return self.store_dir / "history.json"


def setup_logging(log_dir: Path = Path("logs"), level: int = logging.INFO) -> logging.Logger:
    """Setup application logging"""
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"duty_roster_{datetime.now().strftime('%Y%m%d')}.log"

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        handlers=[
            logging.FileHandler(log_file, encoding='utf-8'),
            logging.StreamHandler(sys.stdout)
        ]
    )

    return logging.getLogger(__name__)


def create_scheduler(config: AppConfig, confirm: Callable[[str], bool],
                     secret_prompt: Optional[Callable[[str], Optional[str]]] = None,
                     audit: Optional[AuditSink] = None) -> ShiftScheduler:
    """Build a loaded ShiftScheduler for the given configuration"""
    logger = logging.getLogger(__name__)
    config.data_dir.mkdir(parents=True, exist_ok=True)

    data_manager = DataManager(
        LocalCache(str(config.cache_file)),
        JsonDocumentStore(str(config.store_dir) if config.store_dir else None)
    )
    data_manager.load()
    data_manager.set_setting("lastUsedMonth", datetime.now().strftime("%Y-%m"))
    logger.info(f"Schedule loaded ({data_manager.status}), {len(data_manager.schedule)} cells")

    if audit is None:
        audit = JsonHistorySink(str(config.history_file)) if config.history_file else NullAuditSink()

    guard = DestructiveOperationGuard(confirm, secret_prompt, config.clear_secret)
    return ShiftScheduler(data_manager, guard, audit=audit, actor=config.actor)
