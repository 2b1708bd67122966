"""
Service Results Module

Structured results returned by every public payment operation. Callers read
``success`` and ``message``; ``outcome`` tells a skip apart from a failure.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Outcome(Enum):
    """What an operation ended up doing"""
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"
    NOTHING_TO_DO = "nothing_to_do"
    INVALID_STATE = "invalid_state"    # Agreement not active or without rent
    NOT_FOUND = "not_found"
    STORAGE_ERROR = "storage_error"
    TIMEOUT = "timeout"

    @property
    def is_failure(self) -> bool:
        return self in (Outcome.NOT_FOUND, Outcome.STORAGE_ERROR, Outcome.TIMEOUT)


@dataclass
class ServiceResult:
    """Success flag, message and optional payload"""
    success: bool
    message: str = ""
    data: Any = None
    error: Optional[str] = None
    outcome: Optional[Outcome] = None

    @classmethod
    def ok(cls, data: Any = None, message: str = "",
           outcome: Outcome = Outcome.CREATED) -> 'ServiceResult':
        return cls(success=True, message=message, data=data, outcome=outcome)

    @classmethod
    def skipped(cls, message: str, outcome: Outcome = Outcome.NOTHING_TO_DO,
                data: Any = None) -> 'ServiceResult':
        return cls(success=True, message=message, data=data, outcome=outcome)

    @classmethod
    def fail(cls, message: str, outcome: Outcome = Outcome.STORAGE_ERROR,
             error: Optional[BaseException] = None) -> 'ServiceResult':
        return cls(
            success=False,
            message=message,
            error=str(error) if error is not None else None,
            outcome=outcome
        )

    @property
    def is_skip(self) -> bool:
        return self.success and self.outcome not in (None, Outcome.CREATED)


@dataclass
class RunSummary:
    """Accumulated result of a run over many agreements"""
    success: bool = True
    message: str = ""
    generated: int = 0
    skipped: int = 0
    failed: int = 0
    results: Dict[str, ServiceResult] = field(default_factory=dict)

    def add(self, agreement_id: str, result: ServiceResult) -> None:
        self.results[agreement_id] = result
        if not result.success:
            self.failed += 1
        elif result.outcome == Outcome.CREATED:
            self.generated += 1
        else:
            self.skipped += 1


@dataclass
class BatchItemResult:
    id: str
    success: bool
    message: str = ""


@dataclass
class BatchResult:
    """Per-item results plus totals for a batch generation"""
    results: List[BatchItemResult] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        succeeded = sum(1 for r in self.results if r.success)
        return {
            "total": len(self.results),
            "succeeded": succeeded,
            "failed": len(self.results) - succeeded
        }
