import stat
from pathlib import Path

from preprocessor_runner.processor.exceptions import FilesystemError
from preprocessor_runner.processor.models import InputFile


def mirrored_path(root: Path, relative_path: str) -> Path:
    """Build the path of a walked file below root: {root}/{relative_path}"""
    return root.joinpath(*relative_path.split("/"))


class FileLoader:
    """Reads the bytes of a walked file into an InputFile."""

    def __init__(self, input_root: Path) -> None:
        self._input_root = input_root

    def load(self, relative_path: str) -> InputFile | None:
        """Read file bytes from disk.

        Returns:
            The InputFile, or None when the path is no longer a regular file.

        Raises:
            FilesystemError: if the file cannot be stat'ed or read.
        """
        path = mirrored_path(self._input_root, relative_path)
        try:
            mode = path.stat().st_mode
            if not stat.S_ISREG(mode):
                return None
            content = path.read_bytes()
        except OSError as exc:
            raise FilesystemError(f"Failed to read {relative_path}: {exc}") from exc
        return InputFile(name=relative_path, content=content)
