from abc import ABC, abstractmethod


class BasePolicySource(ABC):
    """Contract for all de-identification policy loading adapters."""

    @abstractmethod
    def load(self) -> object:
        """Return the policy document.

        The value is handed to preprocessors verbatim and never inspected
        by the pipeline.

        Raises:
            CollaboratorLoadError: on any failure.
        """
