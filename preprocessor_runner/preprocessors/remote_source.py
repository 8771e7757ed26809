import os
import tempfile
from pathlib import Path

import httpx

from preprocessor_runner.logging.logger import Log
from preprocessor_runner.preprocessors.base import BasePreprocessorSource, PreprocessorEntry
from preprocessor_runner.preprocessors.fetch import fetch_text
from preprocessor_runner.preprocessors.module_source import (
    DEFAULT_ATTRIBUTE,
    entries_from_module,
    load_module_from_path,
)


class RemotePreprocessorSource(BasePreprocessorSource):
    """Fetches preprocessor source code over HTTP and loads it.

    The code is written to a temporary file only for the duration of the
    load; nothing is cached between runs.
    """

    def __init__(
        self,
        url: str,
        *,
        policy: object = None,
        attribute: str = DEFAULT_ATTRIBUTE,
        timeout_seconds: float = 30,
        client: httpx.Client | None = None,
    ) -> None:
        self._url = url
        self._policy = policy
        self._attribute = attribute
        self._timeout_seconds = timeout_seconds
        self._client = client

    def load(self) -> list[PreprocessorEntry]:
        Log.info(f"Fetching preprocessors from {self._url}")
        code = fetch_text(self._url, timeout_seconds=self._timeout_seconds, client=self._client)

        fd, temp_name = tempfile.mkstemp(prefix="remote_file_preprocessors_", suffix=".py")
        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(code)
            module = load_module_from_path(temp_path)
            return entries_from_module(module, policy=self._policy, attribute=self._attribute)
        finally:
            temp_path.unlink(missing_ok=True)
