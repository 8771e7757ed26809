import sys
from collections import deque
from collections.abc import Iterable, Iterator
from concurrent.futures import Future, ThreadPoolExecutor
from contextlib import closing
from pathlib import Path
from typing import TextIO

from preprocessor_runner.config.settings import Settings
from preprocessor_runner.logging.capture import LogCapture
from preprocessor_runner.logging.logger import Log
from preprocessor_runner.preprocessors.registry import PreprocessorRegistry
from preprocessor_runner.processor.exceptions import FilesystemError, LogCaptureError
from preprocessor_runner.processor.file_loader import FileLoader, mirrored_path
from preprocessor_runner.processor.file_processor import FileProcessor
from preprocessor_runner.processor.models import (
    Errored,
    Outcome,
    Rejected,
    RunReport,
    Transformed,
    Unmatched,
)
from preprocessor_runner.processor.walker import DirectoryWalker

DEFAULT_REPORT_FILENAME = "preprocessor_logs.txt"


class PipelineOrchestrator:
    """Drives every walked file through the FileProcessor and aggregates a report.

    Pipeline per file: read -> process -> persist -> record -> progress marker.
    The report file is written once, after the last file.
    """

    def __init__(
        self,
        walker: DirectoryWalker,
        file_processor: FileProcessor,
        report_filename: str = DEFAULT_REPORT_FILENAME,
        max_workers: int = 1,
        progress_stream: TextIO | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self._walker = walker
        self._file_processor = file_processor
        self._report_filename = report_filename
        self._max_workers = max_workers
        self._progress_stream = progress_stream

    def run(self, input_root: Path, output_root: Path) -> RunReport:
        """Process every regular file under input_root into output_root.

        A KeyboardInterrupt stops the traversal; the partial report is still
        written and returned with ``interrupted`` set.

        Raises:
            FilesystemError: if input_root cannot be walked, output_root is
                input_root, or output_root or the report file cannot be written.
        """
        paths = self._walker.walk(input_root, exclude=self._nested_output(input_root, output_root))
        self._ensure_output_root(output_root)
        Log.info(f"Processing files from {input_root} into {output_root}")

        report = RunReport()
        loader = FileLoader(input_root)
        try:
            with closing(self._outcomes(paths, loader)) as outcomes:
                for path, outcome in outcomes:
                    outcome = self._persist(output_root, path, outcome)
                    report.record(path, outcome)
                    Log.debug(f"{path}: {outcome.status.value}")
                    self._emit_progress(path, outcome)
        except KeyboardInterrupt:
            report.interrupted = True
            Log.warning("Run interrupted, writing partial report")

        self._write_report(output_root, report)
        self._emit(f"\n{report.summary_line()}")
        Log.info(report.summary_line())
        return report

    def _outcomes(self, paths: Iterable[str], loader: FileLoader) -> Iterator[tuple[str, Outcome]]:
        if self._max_workers == 1:
            for path in paths:
                yield path, self._process_one(loader, path)
            return

        # Results are consumed in visitation order by the calling thread,
        # which is the only one touching the report and the output tree.
        pool = ThreadPoolExecutor(max_workers=self._max_workers, thread_name_prefix="preprocess")
        pending: deque[tuple[str, Future[Outcome]]] = deque()
        try:
            for path in paths:
                pending.append((path, pool.submit(self._process_one, loader, path)))
                if len(pending) >= self._max_workers * 2:
                    done_path, future = pending.popleft()
                    yield done_path, future.result()
            while pending:
                done_path, future = pending.popleft()
                yield done_path, future.result()
        finally:
            pool.shutdown(wait=True, cancel_futures=True)

    def _process_one(self, loader: FileLoader, path: str) -> Outcome:
        try:
            file = loader.load(path)
        except FilesystemError as exc:
            return Errored(reason=str(exc))
        if file is None:
            return Unmatched()
        try:
            return self._file_processor.process(file)
        except LogCaptureError as exc:
            Log.error(f"Log capture failed for {path}: {exc}")
            return Errored(reason=str(exc))

    def _persist(self, output_root: Path, path: str, outcome: Outcome) -> Outcome:
        if not isinstance(outcome, Transformed):
            return outcome
        target = mirrored_path(output_root, path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(outcome.content)
        except OSError as exc:
            return Errored(reason=f"Failed to write {path}: {exc}", log_lines=outcome.log_lines)
        return outcome

    def _nested_output(self, input_root: Path, output_root: Path) -> Path | None:
        # Written files and the report must never be walked as inputs.
        resolved_input = input_root.resolve()
        resolved_output = output_root.resolve()
        if resolved_output == resolved_input:
            raise FilesystemError(f"Output directory must differ from input directory: {output_root}")
        if resolved_output.is_relative_to(resolved_input):
            return resolved_output
        return None

    def _ensure_output_root(self, output_root: Path) -> None:
        try:
            output_root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FilesystemError(f"Cannot create output directory {output_root}: {exc}") from exc

    def _write_report(self, output_root: Path, report: RunReport) -> None:
        report_path = output_root / self._report_filename
        try:
            report_path.write_text(report.render_log(), encoding="utf-8")
        except OSError as exc:
            raise FilesystemError(f"Cannot write report {report_path}: {exc}") from exc
        Log.debug(f"Wrote {len(report.log_entries)} log entries to {report_path}")

    def _emit_progress(self, path: str, outcome: Outcome) -> None:
        if isinstance(outcome, Transformed):
            self._emit(f"✔ {path}")
        elif isinstance(outcome, Rejected):
            self._emit(f"✖ {path} (rejected: {outcome.reason})")
        elif isinstance(outcome, Errored):
            self._emit(f"✖ {path} (error: {outcome.reason})")
        else:
            self._emit(f"- {path} (skipped)")

    def _emit(self, line: str) -> None:
        stream = self._progress_stream if self._progress_stream is not None else sys.stdout
        stream.write(line + "\n")
        stream.flush()


def build_orchestrator(settings: Settings, registry: PreprocessorRegistry) -> PipelineOrchestrator:
    """Build a PipelineOrchestrator with all required collaborators."""
    file_processor = FileProcessor(
        registry=registry,
        log_capture=LogCapture(settings.capture_level),
        transform_timeout_seconds=settings.transform_timeout_seconds,
    )
    return PipelineOrchestrator(
        walker=DirectoryWalker(sort=settings.sort_paths),
        file_processor=file_processor,
        report_filename=settings.report_filename,
        max_workers=settings.max_workers,
    )
