from preprocessor_runner.processor.exceptions import POLICY_REJECTION_MESSAGE
from preprocessor_runner.processor.models import Errored, Rejected


def failure_reason(exc: BaseException) -> str:
    """Return the exception message, or its repr when the message is empty."""
    message = str(exc)
    return message if message else repr(exc)


def classify_failure(reason: str, log_lines: list[str]) -> Rejected | Errored:
    """Map a transform failure to Rejected or Errored.

    Preprocessors signal a policy rejection only through the message text,
    so the literal sentence must be matched as a substring.
    """
    if POLICY_REJECTION_MESSAGE in reason:
        return Rejected(reason=reason, log_lines=log_lines)
    return Errored(reason=reason, log_lines=log_lines)
