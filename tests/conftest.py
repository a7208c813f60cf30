import logging
import pytest
from pathlib import Path

from skatos.persistence import StoreFile
from skatos.storage import SkatosStore
from skatos.styling import StyledFormatter


@pytest.fixture(autouse=True)
def _drop_cli_log_handlers():
    """In-process CLI runs install a root handler bound to the captured stderr."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if isinstance(handler.formatter, StyledFormatter):
            root.removeHandler(handler)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    return tmp_path / "home" / "store.json"


@pytest.fixture
def store(store_path: Path) -> SkatosStore:
    """A store rooted in a temporary directory with a short lock timeout."""
    return SkatosStore(StoreFile(store_path, lock_timeout=0.5))
