from typing import Optional

import httpx

from relay.logging_config import get_logger
from relay.services.pipeline.base import PipelineActivation, PipelineInvocationError, PipelineInvoker

logger = get_logger("pipeline.http")


class HttpPipelineInvoker(PipelineInvoker):
    """Invokes pipelines through a serverless actions REST API, waiting for the result."""

    def __init__(
        self,
        api_url: str,
        namespace: str = "_",
        api_key: Optional[str] = None,
        timeout_seconds: float = 60.0,
    ):
        self.api_url = api_url.rstrip("/")
        self.namespace = namespace
        self.timeout_seconds = timeout_seconds
        self.auth = None
        if api_key:
            username, _, password = api_key.partition(":")
            self.auth = (username, password)

    def _action_url(self, name: str) -> str:
        return f"{self.api_url}/api/v1/namespaces/{self.namespace}/actions/{name.lstrip('/')}"

    async def invoke(self, name: str, params: dict) -> PipelineActivation:
        url = self._action_url(name)
        logger.debug(f"Pipeline request: name={name}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds, auth=self.auth) as client:
                response = await client.post(url, params={"blocking": "true"}, json=params)
        except httpx.HTTPError as e:
            raise PipelineInvocationError(f"Pipeline request failed: {e}") from e

        logger.debug(f"Pipeline response status: {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        activation_id = data.get("activationId")
        activation_response = data.get("response") or {}

        if response.status_code == 202:
            raise PipelineInvocationError(
                f"Pipeline {name} did not finish within the blocking window",
                activation_id=activation_id,
            )

        if response.status_code != 200 or activation_response.get("success") is False:
            raise PipelineInvocationError(_error_message(response, data), activation_id=activation_id)

        return PipelineActivation(activation_id=activation_id, result=activation_response.get("result"))


def _error_message(response: httpx.Response, data: dict) -> str:
    result = (data.get("response") or {}).get("result") or {}
    if isinstance(result, dict) and result.get("error"):
        error = result["error"]
        return error if isinstance(error, str) else str(error)
    if data.get("error"):
        return str(data["error"])
    return f"Pipeline API error: {response.status_code} - {response.text}"
