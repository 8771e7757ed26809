POLICY_REJECTION_MESSAGE = "Image is rejected due to de-identification protocol."


class PipelineError(Exception):
    """Base exception for all pipeline-related errors."""


class FilesystemError(PipelineError):
    """Raised when the input root, output root or report file cannot be used."""


class LogCaptureError(PipelineError):
    """Raised when diagnostic output cannot be intercepted or restored."""


class TransformError(PipelineError):
    """Raised by a preprocessor when it cannot transform a file."""


class PolicyRejectionError(TransformError):
    """Raised by a preprocessor when the de-identification policy rejects a file."""

    def __init__(self, message: str = POLICY_REJECTION_MESSAGE) -> None:
        super().__init__(message)


class TransformTimeoutError(TransformError):
    """Raised when a transform does not finish within the configured timeout."""
