import os
from collections.abc import Iterator
from pathlib import Path

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.processor.exceptions import FilesystemError


class DirectoryWalker:
    """Enumerates regular files below an input root as relative posix paths."""

    def __init__(self, sort: bool = True) -> None:
        self._sort = sort

    def walk(self, root: Path, exclude: Path | None = None) -> Iterator[str]:
        """Return a lazy, non-restartable iterator over relative file paths.

        The directory exclude, when it lies inside root, is not descended into.

        Raises:
            FilesystemError: if root does not exist or is not a directory.
        """
        if not root.exists():
            raise FilesystemError(f"Input directory not found: {root}")
        if not root.is_dir():
            raise FilesystemError(f"Input path is not a directory: {root}")
        excluded = exclude.resolve() if exclude is not None else None
        return self._walk_dir(root, root, excluded)

    def _walk_dir(self, root: Path, directory: Path, excluded: Path | None) -> Iterator[str]:
        try:
            with os.scandir(directory) as it:
                entries = list(it)
        except OSError as exc:
            Log.warning(f"Skipping unreadable directory {directory}: {exc}")
            return
        if self._sort:
            entries.sort(key=lambda entry: entry.name)

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    path = Path(entry.path)
                    if excluded is not None and path.resolve() == excluded:
                        Log.debug(f"Skipping excluded directory {path}")
                        continue
                    yield from self._walk_dir(root, path, excluded)
                elif entry.is_file():
                    yield Path(entry.path).relative_to(root).as_posix()
            except OSError as exc:
                Log.warning(f"Skipping {entry.path}: {exc}")
