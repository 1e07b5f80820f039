"""
Pytest Configuration and Fixtures
"""

import sys
import tempfile
from datetime import datetime, timezone
from email.message import EmailMessage
from pathlib import Path
from typing import Generator, List

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from formsheet_core.config import FormSheetConfig
from formsheet_core.notifier import Mailer
from formsheet_core.schema import CANONICAL_SCHEMA
from formsheet_core.store import InMemoryStore


FIXED_NOW = datetime(2025, 10, 19, 8, 30, 15, tzinfo=timezone.utc)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config(temp_dir: Path) -> FormSheetConfig:
    """Configuration writing everything under a temporary directory."""
    cfg = FormSheetConfig()
    cfg.store.backend = "memory"
    cfg.store.path = str(temp_dir / "reponses.xlsx")
    cfg.store.timezone = "UTC"
    cfg.store.lock_timeout = 5.0
    cfg.export.directory = str(temp_dir / "exports")
    cfg.logging.log_dir = str(temp_dir / "logs")
    return cfg


@pytest.fixture
def empty_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def headed_store() -> InMemoryStore:
    """Store holding only the canonical header row."""
    return InMemoryStore(rows=[list(CANONICAL_SCHEMA)])


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def sample_fields() -> dict:
    return {
        "nom": "Dupont",
        "prenom": "Jean",
        "email": "jean.dupont@example.com",
        "telephone": "+216 12 345 678",
        "universite": "ESPRIT",
        "facebookLink": "https://facebook.com/jeandupont",
    }


class RecordingMailer(Mailer):
    """Mailer keeping every message; fails the first ``fail_times`` sends."""

    def __init__(self, fail_times: int = 0):
        self.fail_times = fail_times
        self.attempts = 0
        self.sent: List[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        self.attempts += 1
        if self.attempts <= self.fail_times:
            raise ConnectionRefusedError("SMTP server unavailable")
        self.sent.append(message)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def mailer_factory():
    """Build ``RecordingMailer`` instances with a chosen number of failures."""
    return RecordingMailer
