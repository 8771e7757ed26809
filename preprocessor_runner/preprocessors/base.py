from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from preprocessor_runner.processor.models import InputFile

Matcher = Callable[[InputFile], bool | Awaitable[bool]]
Transform = Callable[[InputFile], Any]


@dataclass(frozen=True)
class PreprocessorEntry:
    """One claim-and-transform unit supplied by external preprocessor code."""

    matcher: Matcher
    transform: Transform
    name: str = ""

    @property
    def label(self) -> str:
        if self.name:
            return self.name
        return getattr(self.transform, "__name__", type(self.transform).__name__)


class BasePreprocessorSource(ABC):
    """Contract for all preprocessor loading adapters."""

    @abstractmethod
    def load(self) -> list[PreprocessorEntry]:
        """Load the ordered preprocessor list.

        The order is significant: the first entry whose matcher accepts a
        file wins.

        Raises:
            CollaboratorLoadError: on any failure.
        """
