from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class DispatchResult:
    """Outcome of one pipeline dispatch. Exactly one is produced per event."""

    ok: bool
    activation_id: Optional[str] = None
    response: Any = None
    error_message: Optional[str] = None

    @staticmethod
    def success(activation_id: Optional[str], response: Any) -> "DispatchResult":
        return DispatchResult(ok=True, activation_id=activation_id, response=response)

    @staticmethod
    def failure(error_message: str, activation_id: Optional[str] = None) -> "DispatchResult":
        return DispatchResult(ok=False, activation_id=activation_id, error_message=error_message)

    def to_dict(self) -> dict:
        if self.ok:
            return {"activationId": self.activation_id, "successResponse": self.response}
        return {"activationId": self.activation_id, "errorMessage": self.error_message}


@dataclass
class BatchReport:
    successful_invocations: list[DispatchResult] = field(default_factory=list)
    failed_invocations: list[DispatchResult] = field(default_factory=list)

    @classmethod
    def from_results(cls, results: list[DispatchResult]) -> "BatchReport":
        return cls(
            successful_invocations=[r for r in results if r.ok],
            failed_invocations=[r for r in results if not r.ok],
        )

    @property
    def total(self) -> int:
        return len(self.successful_invocations) + len(self.failed_invocations)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed_invocations)

    def to_dict(self) -> dict:
        return {
            "successfulInvocations": [r.to_dict() for r in self.successful_invocations],
            "failedInvocations": [r.to_dict() for r in self.failed_invocations],
        }
