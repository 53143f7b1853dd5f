"""Project-level configuration and path helpers.

Settings come from the environment (``.env`` is loaded by ``main``):

    DATABASE_URL             sqlite file, relative to the project root, or ":memory:"
    BLOB_DIR                 where drawings and avatars are written
    BLOB_BASE_URL            URL prefix blobs are served under
    DUET_PAGE_SIZE           live window / history page size
    DUET_ALLOWED_IDENTITIES  comma-separated allow-list; empty admits everyone
"""

import os
from pathlib import Path
from typing import Union

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
DATA_DIR = PROJECT_ROOT / "03_data"
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_DB_PATH = DATA_DIR / "duet.db"
DEFAULT_LOG_PATH = LOGS_DIR / "app.log"
DEFAULT_BLOB_DIR = DATA_DIR / "blobs"

DATA_DIR.mkdir(parents=True, exist_ok=True)
LOGS_DIR.mkdir(parents=True, exist_ok=True)

PAGE_SIZE = int(os.getenv("DUET_PAGE_SIZE", "50"))
DEFAULT_LIST_EMOJI = "📋"
BLOB_BASE_URL = os.getenv("BLOB_BASE_URL", "/blobs")

PathLike = Union[str, Path]


def _in_project(value: PathLike) -> Path:
    path = Path(value)
    return path if path.is_absolute() else PROJECT_ROOT / path


def resolve_db_path(env_value: PathLike | None = None) -> PathLike:
    """DATABASE_URL as an absolute path; ":memory:" passes through."""
    if not env_value:
        return DEFAULT_DB_PATH
    if str(env_value) == ":memory:":
        return ":memory:"
    return _in_project(env_value)


def resolve_blob_dir(env_value: PathLike | None = None) -> Path:
    """BLOB_DIR as an absolute path."""
    return _in_project(env_value) if env_value else DEFAULT_BLOB_DIR


def allowed_identities(env_value: str | None = None) -> frozenset[str]:
    """Parse the comma-separated allow-list of identities."""
    raw = env_value if env_value is not None else os.getenv("DUET_ALLOWED_IDENTITIES", "")
    return frozenset(part.strip() for part in raw.split(",") if part.strip())
