"""
Domain errors for generation and review.

Routers translate these into HTTP responses; the job orchestrator
turns ParseError / PersistenceError into a FAILED job and recovers
GenerationTimeout / MalformedGenerationOutput locally.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional


class QuestionBankError(Exception):
    """Base class for question bank failures."""


class MaterialNotFound(QuestionBankError):
    """Raised when a generation job references an unknown material."""


class JobNotFound(QuestionBankError):
    """Raised when polling or cancelling an unknown job."""


class QuotaConfigInvalid(QuestionBankError):
    """Raised when quota axes do not partition the same total."""


class ParseError(QuestionBankError):
    """Raised when the Section Source cannot produce sections."""


class GenerationTimeout(QuestionBankError):
    """Raised when a generator call misses its deadline."""


class MalformedGenerationOutput(QuestionBankError):
    """Raised when generator text cannot be read as question objects."""


class PersistenceError(QuestionBankError):
    """Raised when a storage write fails."""


class ArtifactNotFound(QuestionBankError):
    """Raised when a question or pattern id does not exist."""


class InvalidTransition(QuestionBankError):
    """Raised when an approval transition is not allowed from the current state."""

    def __init__(self, message: str, current_status: Optional[str] = None):
        super().__init__(message)
        self.current_status = current_status


class RemarksTooShort(InvalidTransition):
    """Raised when a rejection carries fewer than the minimum remark characters."""


@dataclass
class QuotaUnsatisfied:
    """Warning: the planner ran out of sections before the quotas were met."""
    requested: int
    planned: int
    missing: Dict[str, Dict[str, int]] = field(default_factory=dict)

    @property
    def shortfall(self) -> int:
        return self.requested - self.planned

    def message(self) -> str:
        return (
            f"QuotaUnsatisfied: planned {self.planned} of {self.requested} questions "
            f"(shortfall {self.shortfall}); not enough sections for the remaining quota"
        )
