from relay.services.pipeline.base import PipelineActivation, PipelineInvocationError, PipelineInvoker
from relay.services.pipeline.http_invoker import HttpPipelineInvoker

__all__ = ["PipelineActivation", "PipelineInvocationError", "PipelineInvoker", "HttpPipelineInvoker"]
