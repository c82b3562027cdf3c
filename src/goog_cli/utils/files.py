"""File helpers for state shared between independent CLI invocations.

Several ``goog`` processes may read and write the same files at once, so
writes go to a temporary file in the target directory and are moved into
place with ``os.replace``. Readers therefore see either the old or the new
content, never a partial file.
"""

import os
import sys
import tempfile
from pathlib import Path


def ensure_private_dir(path: Path) -> None:
    """Create a directory readable only by the owner, or tighten an existing one."""
    if not path.exists():
        path.mkdir(parents=True, mode=0o700)
    elif sys.platform != "win32":
        path.chmod(0o700)


def atomic_write_text(path: Path, content: str, mode: int = 0o600) -> None:
    """Atomically replace ``path`` with ``content``.

    Args:
        path: Destination file.
        content: Text to write (UTF-8).
        mode: Permission bits for the new file.

    Raises:
        OSError: If the file cannot be written or moved into place.
    """
    ensure_private_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        if sys.platform != "win32":
            os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise
