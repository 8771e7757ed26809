from pathlib import Path

from preprocessor_runner.config.settings import Settings
from preprocessor_runner.preprocessors.base import BasePreprocessorSource
from preprocessor_runner.preprocessors.module_source import (
    FilePreprocessorSource,
    ModulePreprocessorSource,
)
from preprocessor_runner.preprocessors.remote_source import RemotePreprocessorSource


class PreprocessorSourceFactory:
    """Creates the configured preprocessor source."""

    SOURCES: tuple[str, ...] = ("module", "file", "url")

    @classmethod
    def create(cls, settings: Settings, policy: object = None) -> BasePreprocessorSource:
        kind = settings.preprocessor_source.lower()
        location = settings.preprocessor_location
        attribute = settings.preprocessor_attribute
        if kind == "module":
            return ModulePreprocessorSource(location, policy=policy, attribute=attribute)
        if kind == "file":
            return FilePreprocessorSource(Path(location), policy=policy, attribute=attribute)
        if kind == "url":
            return RemotePreprocessorSource(
                location,
                policy=policy,
                attribute=attribute,
                timeout_seconds=settings.http_timeout_seconds,
            )
        raise ValueError(
            f"Unknown preprocessor source '{kind}'. Choose from: {list(cls.SOURCES)}"
        )
