"""Exception hierarchy for content generation."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from passage_workbook.models import PassageFailure


class WorkbookError(Exception):
    """Base class for all passage-workbook errors."""


class GenerationError(WorkbookError):
    """A single model call failed or returned output that does not fit its schema."""


class RetryExhaustedError(GenerationError):
    """A stage kept failing after its whole retry budget was spent."""

    def __init__(self, label: str, attempts: int, last_error: Exception | None = None):
        self.label = label
        self.attempts = attempts
        self.last_error = last_error
        msg = f"{label or 'generation'} failed after {attempts} attempts"
        if last_error is not None:
            msg += f": {last_error}"
        super().__init__(msg)


class PassageProcessingError(WorkbookError):
    """One passage's pipeline failed; the batch skips it and continues."""

    def __init__(self, index: int, source_index: int, cause: Exception):
        self.index = index
        self.source_index = source_index
        self.cause = cause
        super().__init__(f"passage #{index} failed: {cause}")


class BatchExhaustionError(WorkbookError):
    """Every passage in a non-empty batch failed."""

    def __init__(self, failures: list[PassageFailure]):
        self.failures = failures
        super().__init__(f"all {len(failures)} passages failed to generate")


class ExportError(WorkbookError):
    """A document could not be rendered, e.g. no Korean-capable font is available."""
