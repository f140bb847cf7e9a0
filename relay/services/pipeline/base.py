from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class PipelineActivation:
    activation_id: Optional[str]
    result: Any = None


class PipelineInvocationError(Exception):
    def __init__(self, message: str, activation_id: Optional[str] = None):
        self.message = message
        self.activation_id = activation_id
        super().__init__(message)


class PipelineInvoker(ABC):
    """Abstract base class for pipeline backends."""

    @abstractmethod
    async def invoke(self, name: str, params: dict) -> PipelineActivation:
        """Run pipeline `name` to completion and return its activation.

        Raises PipelineInvocationError when the pipeline fails.
        """
        pass
