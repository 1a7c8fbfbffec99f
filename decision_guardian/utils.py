import os
import unicodedata
from pathlib import Path, PurePosixPath, PureWindowsPath

from decision_guardian.constants import WORKSPACE_ENV_VAR


def normalize_path(path: str) -> str:
    """Forward slashes and Unicode NFC, the form every matcher compares against."""
    return unicodedata.normalize("NFC", path.replace("\\", "/"))


def workspace_root() -> Path:
    configured = os.environ.get(WORKSPACE_ENV_VAR)
    return Path(configured) if configured else Path.cwd()


def is_under(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except (OSError, ValueError):
        return False


def is_foreign_absolute(raw: str) -> bool:
    """True for Windows-style absolute paths (``C:\\x``) seen on a POSIX host."""
    if os.name == "nt":
        return False
    return PureWindowsPath(raw).is_absolute() and not PurePosixPath(raw).is_absolute()


def truncate(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else text[:limit]
