from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar


@dataclass(frozen=True)
class InputFile:
    """One file discovered under the input root, as handed to preprocessors."""

    name: str  # relative path with "/" separators, unique within a run
    content: bytes
    declared_type: str = ""


class OutcomeStatus(str, Enum):
    TRANSFORMED = "transformed"
    REJECTED = "rejected"
    ERRORED = "errored"
    UNMATCHED = "unmatched"


@dataclass(frozen=True)
class Transformed:
    content: bytes
    log_lines: list[str] = field(default_factory=list)

    status: ClassVar[OutcomeStatus] = OutcomeStatus.TRANSFORMED


@dataclass(frozen=True)
class Rejected:
    reason: str
    log_lines: list[str] = field(default_factory=list)

    status: ClassVar[OutcomeStatus] = OutcomeStatus.REJECTED


@dataclass(frozen=True)
class Errored:
    reason: str
    log_lines: list[str] = field(default_factory=list)

    status: ClassVar[OutcomeStatus] = OutcomeStatus.ERRORED


@dataclass(frozen=True)
class Unmatched:
    status: ClassVar[OutcomeStatus] = OutcomeStatus.UNMATCHED


Outcome = Transformed | Rejected | Errored | Unmatched


@dataclass
class RunReport:
    """Accumulates counters and log entries as files move through the pipeline."""

    total_count: int = 0
    transformed_count: int = 0
    rejected_count: int = 0
    errored_count: int = 0
    unmatched_count: int = 0
    log_entries: list[str] = field(default_factory=list)
    interrupted: bool = False

    def record(self, path: str, outcome: Outcome) -> None:
        """Count one visited file and append its log entry, if it has one."""
        self.total_count += 1
        if isinstance(outcome, Transformed):
            self.transformed_count += 1
            self.log_entries.append(f"[{path}] LOGS:\n" + "\n".join(outcome.log_lines) + "\n")
        elif isinstance(outcome, Rejected):
            self.rejected_count += 1
            self.log_entries.append(f"[{path}] REJECTED: {outcome.reason}\n")
        elif isinstance(outcome, Errored):
            self.errored_count += 1
            self.log_entries.append(
                f"[{path}] ERROR: {outcome.reason}\n" + "\n".join(outcome.log_lines) + "\n"
            )
        elif isinstance(outcome, Unmatched):
            self.unmatched_count += 1
        else:
            raise TypeError(f"Unknown outcome type: {type(outcome).__name__}")

    def render_log(self) -> str:
        return "\n".join(self.log_entries)

    def summary_line(self) -> str:
        line = (
            f"Summary: total={self.total_count}, transformed={self.transformed_count}, "
            f"rejected={self.rejected_count}, errors={self.errored_count}, "
            f"unmatched={self.unmatched_count}"
        )
        if self.interrupted:
            line += " (interrupted)"
        return line
