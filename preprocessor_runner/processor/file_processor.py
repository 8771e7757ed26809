import contextvars
import threading
from collections.abc import Callable
from typing import Any

from preprocessor_runner.logging.capture import LogCapture
from preprocessor_runner.preprocessors.base import PreprocessorEntry
from preprocessor_runner.preprocessors.registry import PreprocessorRegistry
from preprocessor_runner.processor.awaitables import resolve
from preprocessor_runner.processor.classification import classify_failure, failure_reason
from preprocessor_runner.processor.exceptions import TransformTimeoutError
from preprocessor_runner.processor.models import InputFile, Outcome, Transformed, Unmatched


def read_result_bytes(result: object) -> bytes:
    """Return the full byte content of a transform result."""
    if isinstance(result, (bytes, bytearray, memoryview)):
        return bytes(result)
    content = getattr(result, "content", None)
    if isinstance(content, (bytes, bytearray, memoryview)):
        return bytes(content)
    read = getattr(result, "read", None)
    if callable(read):
        data = resolve(read())
        if isinstance(data, (bytes, bytearray, memoryview)):
            return bytes(data)
    raise TypeError(f"Transform returned {type(result).__name__}, which exposes no byte content")


def _run_with_timeout(
    func: Callable[[], Any], timeout_seconds: float, log_capture: LogCapture
) -> Any:
    # The worker runs in a copy of the current context so that the open
    # capture keeps collecting its output. It is a daemon thread: a hung
    # transform is abandoned, not joined, and holds interception until it
    # finishes so its late output never reaches the real streams.
    context = contextvars.copy_context()
    outcome: dict[str, Any] = {}

    def target() -> None:
        try:
            with log_capture.interception():
                outcome["value"] = context.run(func)
        except BaseException as exc:  # noqa: BLE001
            outcome["error"] = exc

    worker = threading.Thread(target=target, name="transform", daemon=True)
    worker.start()
    worker.join(timeout_seconds)
    if worker.is_alive():
        raise TransformTimeoutError(f"Transform timed out after {timeout_seconds:g} seconds")
    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]


class FileProcessor:
    """Selects the claiming preprocessor for a file and classifies the result.

    Flow: select entry -> begin capture -> transform -> drain -> release.
    """

    def __init__(
        self,
        registry: PreprocessorRegistry,
        log_capture: LogCapture,
        transform_timeout_seconds: float = 0.0,
    ) -> None:
        self._registry = registry
        self._log_capture = log_capture
        self._timeout = transform_timeout_seconds

    def process(self, file: InputFile) -> Outcome:
        """Run the first matching preprocessor on file.

        Transform failures are returned as Rejected or Errored outcomes.

        Raises:
            LogCaptureError: if diagnostic output cannot be captured or restored.
        """
        entry = self._registry.select_entry(file)
        if entry is None:
            return Unmatched()

        with self._log_capture.capture() as capture:
            try:
                content = self._transform(entry, file)
            except Exception as exc:
                reason = failure_reason(exc)
                return classify_failure(reason, capture.drain_text())
            return Transformed(content=content, log_lines=capture.drain_text())

    def _transform(self, entry: PreprocessorEntry, file: InputFile) -> bytes:
        def call() -> bytes:
            return read_result_bytes(resolve(entry.transform(file)))

        if self._timeout > 0:
            return _run_with_timeout(call, self._timeout, self._log_capture)
        return call()
