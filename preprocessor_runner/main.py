import sys

from preprocessor_runner.config.settings import Settings
from preprocessor_runner.logging.logger import Log
from preprocessor_runner.policy.factory import PolicySourceFactory
from preprocessor_runner.preprocessors.exceptions import CollaboratorLoadError
from preprocessor_runner.preprocessors.factory import PreprocessorSourceFactory
from preprocessor_runner.preprocessors.registry import PreprocessorRegistry
from preprocessor_runner.processor.exceptions import FilesystemError
from preprocessor_runner.processor.orchestrator import build_orchestrator

EXIT_OK = 0
EXIT_FATAL = 1
EXIT_INTERRUPTED = 130


def main() -> int:
    """Entry point: load policy -> load preprocessors -> run the pipeline."""
    try:
        settings = Settings()
        Log.configure(settings.log_level)
    except ValueError as exc:
        # Log is not configured yet.
        print(f"Error processing files: {exc}", file=sys.stderr)
        return EXIT_FATAL

    try:
        policy = PolicySourceFactory.create(settings).load()
        source = PreprocessorSourceFactory.create(settings, policy)
        registry = PreprocessorRegistry.load(source)
        orchestrator = build_orchestrator(settings, registry)
        report = orchestrator.run(settings.input_dir, settings.output_dir)
    except (CollaboratorLoadError, FilesystemError, ValueError) as exc:
        Log.error(f"Error processing files: {exc}")
        return EXIT_FATAL

    if report.interrupted:
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
