import json
from pathlib import Path

import httpx

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.policy.base import BasePolicySource
from preprocessor_runner.preprocessors.exceptions import CollaboratorLoadError
from preprocessor_runner.preprocessors.fetch import fetch_text


class RemotePolicySource(BasePolicySource):
    """Fetches a JSON policy document over HTTP."""

    def __init__(
        self,
        url: str,
        *,
        timeout_seconds: float = 30,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._timeout_seconds = timeout_seconds
        self._client = client

    def load(self) -> object:
        Log.info(f"Fetching de-identification policy from {self._url}")
        body = fetch_text(self._url, timeout_seconds=self._timeout_seconds, client=self._client)
        try:
            return json.loads(body)
        except json.JSONDecodeError as exc:
            raise CollaboratorLoadError(f"Policy at {self._url} is not valid JSON: {exc}") from exc


class FilePolicySource(BasePolicySource):
    """Reads a JSON policy document from disk."""

    def __init__(self, path: Path) -> None:
        self._path = path

    def load(self) -> object:
        try:
            return json.loads(self._path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise CollaboratorLoadError(f"Failed to read policy file: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise CollaboratorLoadError(f"Policy file {self._path} is not valid JSON: {exc}") from exc


class NullPolicySource(BasePolicySource):
    """Supplies no policy; for preprocessors that do not need one."""

    def load(self) -> object:
        return None
