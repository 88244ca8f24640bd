"""Advisory service transport: one async JSON POST per request via httpx."""

import logging

import httpx

from gpu_recommender.config import (
    ADVISORY_ENDPOINT,
    ADVISORY_MODEL,
    ADVISORY_REFERER,
    ADVISORY_TIMEOUT_SECONDS,
    ADVISORY_TITLE,
)
from gpu_recommender.errors import AdvisoryMalformedResponse, AdvisoryTransportError

logger = logging.getLogger(__name__)

# Sampling parameters sent with every request
TEMPERATURE = 0.7
MAX_TOKENS = 1000
TOP_P = 0.9


def extract_message_content(envelope: object) -> str:
    """Return the assistant text from a chat-completion envelope.

    Accepts both ``{"choices": [{"message": {"content": ...}}]}`` and the
    flatter ``{"message": {"content": ...}}`` shape.
    """
    message = None
    if isinstance(envelope, dict):
        choices = envelope.get("choices")
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
        else:
            message = envelope.get("message")

    content = message.get("content") if isinstance(message, dict) else None
    if not isinstance(content, str) or not content.strip():
        raise AdvisoryMalformedResponse("Advisory response has no message content")
    return content


def _error_details(response: httpx.Response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.reason_phrase or "request failed"
    if isinstance(payload, dict):
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
    return response.reason_phrase or "request failed"


class AdvisoryClient:
    """Chat-completion client for an OpenRouter-compatible endpoint.

    A fresh ``httpx.AsyncClient`` is opened per call so an abandoned call
    releases its connection as soon as its task is cancelled.
    """

    def __init__(
        self,
        api_key: str,
        endpoint: str = ADVISORY_ENDPOINT,
        model: str = ADVISORY_MODEL,
        *,
        request_timeout: float | None = ADVISORY_TIMEOUT_SECONDS,
        referer: str = ADVISORY_REFERER,
        title: str = ADVISORY_TITLE,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.request_timeout = request_timeout
        self.referer = referer
        self.title = title
        self._transport = transport

    def build_payload(self, messages: list[dict]) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "temperature": TEMPERATURE,
            "max_tokens": MAX_TOKENS,
            "top_p": TOP_P,
            "response_format": {"type": "json_object"},
        }

    async def complete(self, messages: list[dict]) -> str:
        """POST *messages* and return the response text.

        Raises:
            AdvisoryTransportError: On network failure or a non-2xx status.
            AdvisoryMalformedResponse: If the body is not a JSON envelope
                with message content.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.referer,
            "X-Title": self.title,
        }
        try:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=self.request_timeout
            ) as client:
                response = await client.post(
                    self.endpoint, json=self.build_payload(messages), headers=headers
                )
        except httpx.HTTPError as e:
            raise AdvisoryTransportError(str(e) or type(e).__name__) from e

        if not response.is_success:
            raise AdvisoryTransportError(_error_details(response), status_code=response.status_code)

        try:
            envelope = response.json()
        except ValueError as e:
            raise AdvisoryMalformedResponse("Advisory response body is not JSON") from e

        content = extract_message_content(envelope)
        logger.debug("Advisory response content: %s", content)
        return content
