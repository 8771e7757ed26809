"""Preprocessor sources backed by Python modules.

A preprocessor module exposes its ordered entries in one of two ways:

* ``build_preprocessors(policy)`` returning an iterable of entries, called
  with the loaded de-identification policy;
* a module attribute (``FILE_PREPROCESSORS`` by default) holding the list.

Each item may be a ``PreprocessorEntry``, a ``(matcher, transform)`` pair,
or a mapping with ``matcher``/``transform`` keys (``fileMatcher`` and
``preprocessor`` are accepted as aliases) and an optional ``name``.
"""

import importlib
import importlib.util
import itertools
from collections.abc import Iterable, Mapping
from pathlib import Path
from types import ModuleType

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.preprocessors.base import BasePreprocessorSource, PreprocessorEntry
from preprocessor_runner.preprocessors.exceptions import CollaboratorLoadError

DEFAULT_ATTRIBUTE = "FILE_PREPROCESSORS"
BUILDER_FUNCTION = "build_preprocessors"

_module_counter = itertools.count()


def _coerce_entry(item: object, index: int) -> PreprocessorEntry:
    if isinstance(item, PreprocessorEntry):
        return item
    if isinstance(item, Mapping):
        matcher = item.get("matcher", item.get("fileMatcher"))
        transform = item.get("transform", item.get("preprocessor"))
        name = str(item.get("name", ""))
    elif isinstance(item, tuple) and len(item) == 2:
        matcher, transform = item
        name = ""
    else:
        raise CollaboratorLoadError(
            f"Preprocessor #{index} has unsupported type {type(item).__name__}"
        )
    if not callable(matcher) or not callable(transform):
        raise CollaboratorLoadError(
            f"Preprocessor #{index} must provide callable matcher and transform"
        )
    return PreprocessorEntry(matcher=matcher, transform=transform, name=name)


def coerce_entries(items: Iterable[object]) -> list[PreprocessorEntry]:
    return [_coerce_entry(item, index) for index, item in enumerate(items)]


def entries_from_module(
    module: ModuleType,
    *,
    policy: object,
    attribute: str = DEFAULT_ATTRIBUTE,
) -> list[PreprocessorEntry]:
    """Extract the ordered entries a preprocessor module exposes."""
    builder = getattr(module, BUILDER_FUNCTION, None)
    try:
        if callable(builder):
            items = builder(policy)
        elif hasattr(module, attribute):
            items = getattr(module, attribute)
        else:
            raise CollaboratorLoadError(
                f"Module '{module.__name__}' defines neither {BUILDER_FUNCTION}() "
                f"nor {attribute}"
            )
        return coerce_entries(items)
    except CollaboratorLoadError:
        raise
    except Exception as exc:
        raise CollaboratorLoadError(
            f"Failed to build preprocessors from '{module.__name__}': {exc}"
        ) from exc


def load_module_from_path(path: Path) -> ModuleType:
    """Execute a Python file as a fresh module, never reusing an earlier load."""
    module_name = f"_preprocessors_{path.stem}_{next(_module_counter)}"
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise CollaboratorLoadError(f"Cannot load preprocessor file: {path}")
    module = importlib.util.module_from_spec(spec)
    try:
        spec.loader.exec_module(module)
    except FileNotFoundError as exc:
        raise CollaboratorLoadError(f"Preprocessor file not found: {path}") from exc
    except Exception as exc:
        raise CollaboratorLoadError(f"Failed to execute preprocessor file {path}: {exc}") from exc
    return module


class ModulePreprocessorSource(BasePreprocessorSource):
    """Loads preprocessors from an importable module."""

    def __init__(
        self,
        module_name: str,
        *,
        policy: object = None,
        attribute: str = DEFAULT_ATTRIBUTE,
    ) -> None:
        self._module_name = module_name
        self._policy = policy
        self._attribute = attribute

    def load(self) -> list[PreprocessorEntry]:
        if not self._module_name:
            raise CollaboratorLoadError("No preprocessor module configured")
        try:
            module = importlib.import_module(self._module_name)
        except Exception as exc:
            raise CollaboratorLoadError(
                f"Failed to import preprocessor module '{self._module_name}': {exc}"
            ) from exc
        Log.debug(f"Imported preprocessor module {self._module_name}")
        return entries_from_module(module, policy=self._policy, attribute=self._attribute)


class FilePreprocessorSource(BasePreprocessorSource):
    """Loads preprocessors from a Python file, re-executing it on every load."""

    def __init__(
        self,
        path: Path,
        *,
        policy: object = None,
        attribute: str = DEFAULT_ATTRIBUTE,
    ) -> None:
        self._path = path
        self._policy = policy
        self._attribute = attribute

    def load(self) -> list[PreprocessorEntry]:
        module = load_module_from_path(self._path)
        Log.debug(f"Loaded preprocessor file {self._path}")
        return entries_from_module(module, policy=self._policy, attribute=self._attribute)
