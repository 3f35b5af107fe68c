"""Outcome of one stage invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class StageStatus(Enum):
    """Stage outcome."""

    SUCCEEDED = "succeeded"
    FAILED_PARTIAL = "failed_partial"
    FAILED_FATAL = "failed_fatal"


@dataclass(frozen=True)
class ItemFailure:
    """One skipped item: a style/script file or one image format job."""

    source: Path
    error: str
    stage: str


@dataclass
class StageResult:
    """Result of a stage run.

    Partial writes are never rolled back: after a FAILED_PARTIAL run the
    output directory holds whatever was written successfully.
    """

    stage: str
    status: StageStatus = StageStatus.SUCCEEDED
    outputs: list[Path] = field(default_factory=list)
    failures: list[ItemFailure] = field(default_factory=list)

    @property
    def failed_count(self) -> int:
        return len(self.failures)

    @property
    def ok(self) -> bool:
        return self.status == StageStatus.SUCCEEDED

    def add_output(self, path: Path) -> None:
        self.outputs.append(path)

    def add_failure(self, source: Path, error: BaseException | str) -> None:
        self.failures.append(ItemFailure(source=source, error=str(error), stage=self.stage))
        self.status = StageStatus.FAILED_PARTIAL

    def summary(self) -> str:
        text = f"{self.stage}: {len(self.outputs)} written"
        if self.failures:
            text += f", {self.failed_count} failed"
        return text
