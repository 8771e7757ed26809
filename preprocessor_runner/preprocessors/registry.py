from collections.abc import Iterable

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.preprocessors.base import BasePreprocessorSource, PreprocessorEntry
from preprocessor_runner.processor.awaitables import resolve
from preprocessor_runner.processor.models import InputFile


class PreprocessorRegistry:
    """Immutable, priority-ordered list of preprocessor entries for one run."""

    def __init__(self, entries: Iterable[PreprocessorEntry] = ()) -> None:
        self._entries = tuple(entries)

    @classmethod
    def load(cls, source: BasePreprocessorSource) -> "PreprocessorRegistry":
        """Load entries once from source, preserving the source's order."""
        registry = cls(source.load())
        Log.info(f"Loaded {len(registry)} preprocessor(s)")
        return registry

    @property
    def entries(self) -> tuple[PreprocessorEntry, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def select_entry(self, file: InputFile) -> PreprocessorEntry | None:
        """Return the first entry whose matcher claims file, or None.

        A matcher that raises counts as not matching.
        """
        for entry in self._entries:
            try:
                matched = resolve(entry.matcher(file))
            except Exception as exc:
                Log.warning(f"Matcher of {entry.label} failed for {file.name}: {exc}")
                continue
            if matched:
                return entry
        return None
