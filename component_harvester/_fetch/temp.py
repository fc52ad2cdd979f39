"""Scoped temporary files and directories for a single fetch.

``TempResources`` is a context manager: everything it creates is removed
when the ``with`` block exits, whether by return, exception, or task
cancellation. A path can be *adopted* out of the scope, in which case its
removal becomes the job of the returned ``CleanupHandle``.
"""

import os
import shutil
import tempfile
import threading
from pathlib import Path
from typing import List, Optional, Union

from component_harvester.logging_config import logger

DEFAULT_PREFIX = "harvest-"


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path, ignore_errors=True)
    else:
        path.unlink(missing_ok=True)


class CleanupHandle:
    """
    Releases a set of adopted paths exactly once.

    ``cleanup()`` is idempotent and safe to call after the paths were
    removed by someone else.
    """

    def __init__(self, paths: List[Path]) -> None:
        self._paths = list(paths)
        self._lock = threading.Lock()
        self._released = False

    @property
    def paths(self) -> List[Path]:
        return list(self._paths)

    @property
    def released(self) -> bool:
        return self._released

    def cleanup(self) -> None:
        with self._lock:
            if self._released:
                return
            self._released = True
        for path in self._paths:
            _remove_path(path)
            logger.debug(f"Released temp resource {path}")


class TempResources:
    """
    Per-request factory for uniquely named temp files and directories.

    Example:
        with TempResources() as temps:
            archive = temps.create_file()
            target = temps.create_dir()
            ...
            handle = temps.adopt(target)  # survives the with block
    """

    def __init__(self, root: Optional[Union[str, Path]] = None, prefix: str = DEFAULT_PREFIX) -> None:
        self._root = str(root) if root is not None else None
        self._prefix = prefix
        self._owned: List[Path] = []

    def create_file(self, suffix: str = "") -> Path:
        """Create an empty, uniquely named temp file."""
        fd, name = tempfile.mkstemp(prefix=self._prefix, suffix=suffix, dir=self._root)
        os.close(fd)
        path = Path(name)
        self._owned.append(path)
        return path

    def create_dir(self) -> Path:
        """Create a uniquely named temp directory."""
        path = Path(tempfile.mkdtemp(prefix=self._prefix, dir=self._root))
        self._owned.append(path)
        return path

    @property
    def owned(self) -> List[Path]:
        return list(self._owned)

    def adopt(self, *paths: Path) -> CleanupHandle:
        """
        Transfer ownership of paths to a CleanupHandle.

        Adopted paths are not removed when this scope releases.

        Raises:
            ValueError: If a path was not created by this scope
        """
        for path in paths:
            if path not in self._owned:
                raise ValueError(f"{path} is not owned by this scope")
        for path in paths:
            self._owned.remove(path)
        return CleanupHandle(list(paths))

    def release(self) -> None:
        """Remove every path still owned by this scope."""
        while self._owned:
            _remove_path(self._owned.pop())

    def __enter__(self) -> "TempResources":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.release()
