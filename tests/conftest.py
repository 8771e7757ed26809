import logging
from collections.abc import Generator
from pathlib import Path

import pytest

from preprocessor_runner.processor.exceptions import POLICY_REJECTION_MESSAGE

PREPROCESSOR_MODULE = f'''
import logging

logger = logging.getLogger("vendor.dicom")


def is_dicom(file):
    return file.name.endswith(".dcm")


def anonymize(file):
    logger.info("De-identifying", file.name)
    if b"PATIENT-NAME" in file.content:
        raise ValueError("{POLICY_REJECTION_MESSAGE}")
    logger.debug("tags", {{"removed": 2}})
    return b"0123456789"


FILE_PREPROCESSORS = [
    {{"name": "dicom", "fileMatcher": is_dicom, "preprocessor": anonymize}},
]
'''


@pytest.fixture(autouse=True)
def restore_log_config() -> Generator[None, None, None]:
    """Undo Log.configure() calls made by a test."""
    logger = logging.getLogger("preprocessor_runner")
    handlers = list(logger.handlers)
    level = logger.level
    propagate = logger.propagate
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture()
def input_tree(tmp_path: Path) -> Path:
    """Input root with one clean DICOM, one text file and one rejected DICOM."""
    root = tmp_path / "input"
    root.mkdir()
    (root / "a.dcm").write_bytes(b"DICM clean study")
    (root / "b.txt").write_bytes(b"notes")
    (root / "c.dcm").write_bytes(b"DICM PATIENT-NAME=Doe")
    return root


@pytest.fixture()
def preprocessor_file(tmp_path: Path) -> Path:
    """A preprocessor module on disk exposing FILE_PREPROCESSORS."""
    path = tmp_path / "file_preprocessors.py"
    path.write_text(PREPROCESSOR_MODULE, encoding="utf-8")
    return path
