from pathlib import Path

from preprocessor_runner.config.settings import Settings
from preprocessor_runner.policy.base import BasePolicySource
from preprocessor_runner.policy.sources import FilePolicySource, NullPolicySource, RemotePolicySource


class PolicySourceFactory:
    """Creates the configured policy source."""

    SOURCES: tuple[str, ...] = ("url", "file", "none")

    @classmethod
    def create(cls, settings: Settings) -> BasePolicySource:
        kind = settings.policy_source.lower()
        if kind == "url":
            return RemotePolicySource(
                settings.policy_location,
                timeout_seconds=settings.http_timeout_seconds,
            )
        if kind == "file":
            return FilePolicySource(Path(settings.policy_location))
        if kind == "none":
            return NullPolicySource()
        raise ValueError(f"Unknown policy source '{kind}'. Choose from: {list(cls.SOURCES)}")
