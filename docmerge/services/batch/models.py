"""Result types produced by a batch run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from docmerge.services.storage.base import FileRef


@dataclass(frozen=True, slots=True)
class Success:
    """Document generated and persisted."""

    file_ref: FileRef
    delivery_attempted: bool = False
    delivery_error: str | None = None

    @property
    def delivered(self) -> bool:
        return self.delivery_attempted and self.delivery_error is None


@dataclass(frozen=True, slots=True)
class Failure:
    """Record could not be turned into a stored document."""

    reason: str
    stage: str


Outcome = Union[Success, Failure]


@dataclass(frozen=True, slots=True)
class GenerationResult:
    row_id: str
    document_number: str
    outcome: Outcome

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, Success)


@dataclass(frozen=True, slots=True)
class BatchReport:
    """Ordered, immutable outcome of one batch run."""

    results: tuple[GenerationResult, ...] = ()
    total_processed: int = 0

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.succeeded)

    @property
    def failed(self) -> int:
        return len(self.results) - self.succeeded

    @property
    def failures(self) -> list[GenerationResult]:
        return [r for r in self.results if not r.succeeded]

    @property
    def delivery_failures(self) -> list[GenerationResult]:
        return [
            r
            for r in self.results
            if isinstance(r.outcome, Success) and r.outcome.delivery_error is not None
        ]


@dataclass(slots=True)
class ReportBuilder:
    """Append-only collector used while a batch is running."""

    _results: list[GenerationResult] = field(default_factory=list)

    def append(self, result: GenerationResult) -> None:
        self._results.append(result)

    def __len__(self) -> int:
        return len(self._results)

    def freeze(self) -> BatchReport:
        return BatchReport(results=tuple(self._results), total_processed=len(self._results))
