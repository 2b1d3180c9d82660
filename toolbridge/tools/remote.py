"""Adapter that exposes one remote provider method as a local tool."""

import logging
from typing import Any, Optional

import httpx

from ..errors import RemoteInvocationError
from ..oauth.tokens import TokenManager
from ..protocol import call_tool_request, extract_content, extract_error
from .base import BaseTool


_log = logging.getLogger(__name__)


class RemoteTool(BaseTool):
    """Uniform callable wrapper around a single remote tool method.

    ``run`` never raises: token acquisition failures, non-2xx responses and
    malformed envelopes all come back as ``{"error": message}``.
    """

    def __init__(
        self,
        provider_id: str,
        name: str,
        description: str,
        endpoint: str,
        input_schema: dict[str, Any],
        tokens: TokenManager,
        client: httpx.AsyncClient,
        answer_instructions: Optional[str] = None,
    ):
        self.provider_id = provider_id
        self._name = name
        self._description = description
        self.endpoint = endpoint
        self._input_schema = input_schema
        self._tokens = tokens
        self._client = client
        self.answer_instructions = answer_instructions or None

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def input_schema(self) -> dict[str, Any]:
        return self._input_schema

    async def run(self, input: dict[str, Any]) -> Any:
        """Invoke the remote method with ``input`` as its arguments."""
        _log.info("Executing remote tool %s (%s)", self.name, self.provider_id)
        _log.debug("Remote tool %s arguments: %s", self.name, input)
        try:
            envelope = await self._invoke(input)
        except RemoteInvocationError as e:
            _log.error("Remote tool %s: %s", self.name, e)
            return {"error": str(e)}
        except Exception as e:
            _log.error("Error executing remote tool %s: %s", self.name, e)
            return {"error": f"Error executing remote tool: {e}"}

        remote_error = extract_error(envelope)
        if remote_error:
            _log.error("Remote tool %s returned an error: %s", self.name, remote_error)
            return {"error": f"Remote tool error: {remote_error}"}

        try:
            content = extract_content(envelope)
        except ValueError as e:
            _log.error("Error executing remote tool %s: %s", self.name, e)
            return {"error": f"Error executing remote tool: {e}"}

        _log.info("Remote tool %s executed successfully", self.name)
        if self.answer_instructions:
            return {**content, "answerInstructions": self.answer_instructions}
        return content

    async def _invoke(self, arguments: dict[str, Any]) -> Any:
        access_token = await self._tokens.get_token(self.provider_id)
        response = await self._client.post(
            self.endpoint,
            json=call_tool_request(self.name, arguments),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
        )
        if not response.is_success:
            raise RemoteInvocationError(response.status_code, response.text)
        return response.json()

    def __repr__(self) -> str:
        return f"RemoteTool(provider_id={self.provider_id!r}, name={self.name!r})"
