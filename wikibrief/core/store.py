"""Flat per-title summary cache.

Each canonical article title maps to a single UTF-8 text file under the
storage root. The file name is the title with filesystem-reserved
characters replaced, so "Turing Award" is stored as "Turing Award.txt".

Distinct titles that differ only in reserved characters (for example
"AC/DC" and "AC:DC") share one file. This is a known limitation of the
naming scheme and is not corrected here.
"""

from __future__ import annotations

from pathlib import Path
import stat

from .errors import StorageError


RESERVED_CHARS = '/\\:*?"<>|'
_RESERVED_TABLE = str.maketrans({ch: "_" for ch in RESERVED_CHARS})
SUFFIX = ".txt"


def sanitize_title(title: str) -> str:
    """Replace every filesystem-reserved character in a title with "_".

    Args:
        title: Canonical article title

    Returns:
        The title with each of / \\ : * ? " < > | replaced by an underscore

    Example:
        >>> sanitize_title("AC/DC: Live?")
        'AC_DC_ Live_'
    """
    return title.translate(_RESERVED_TABLE)


class SummaryStore:
    """Reads and writes summaries keyed by canonical title.

    Entries are never invalidated: once a title has a file, that file is
    the answer for the title.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def ensure_root(self) -> None:
        """Create the storage root if it does not exist yet.

        Raises:
            StorageError: If the directory cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"Cannot create storage directory {self.root}: {exc}") from exc

    def key_for(self, title: str) -> str:
        """Return the storage key (file name) for a title."""
        return f"{sanitize_title(title)}{SUFFIX}"

    def path_for(self, title: str) -> Path:
        return self.root / self.key_for(title)

    def has(self, title: str) -> bool:
        """Return True if a summary file exists for the title.

        Raises:
            StorageError: If the entry cannot be checked (e.g. the file name
                exceeds the filesystem limit)
        """
        path = self.path_for(title)
        try:
            return stat.S_ISREG(path.stat().st_mode)
        except (FileNotFoundError, NotADirectoryError):
            return False
        except OSError as exc:
            raise StorageError(f"Cannot check {path.name}: {exc}") from exc

    def read(self, title: str) -> str:
        """Return the stored summary for a title.

        Raises:
            StorageError: If the file is missing or unreadable
        """
        path = self.path_for(title)
        try:
            with path.open("r", encoding="utf-8", newline="") as handle:
                return handle.read()
        except (OSError, UnicodeDecodeError) as exc:
            raise StorageError(f"Cannot read {path.name}: {exc}") from exc

    def write(self, title: str, text: str) -> Path:
        """Store a summary for a title, replacing any existing file.

        Raises:
            StorageError: If the file cannot be written
        """
        path = self.path_for(title)
        try:
            # newline="" on both sides keeps line endings exactly as generated
            with path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(text)
        except OSError as exc:
            raise StorageError(f"Cannot write {path.name}: {exc}") from exc
        return path
