"""Completion endpoint client. One chat completion request per call, never retried."""

import httpx
from openai import (
    APIConnectionError,
    APIResponseValidationError,
    APIStatusError,
    AsyncOpenAI,
    DefaultAsyncHttpxClient,
)
from openai.types.chat import ChatCompletionMessageParam

NO_API_KEY = "no-key"


async def _drop_authorization(request: httpx.Request):
    request.headers.pop("Authorization", None)


class CompletionError(Exception):
    """Base class for a failed completion call"""


class TransportError(CompletionError):
    """The request never produced an HTTP response (network, DNS, timeout)"""

    def __init__(self, detail: str):
        super().__init__(f"Failed to send request to LLM: {detail}")


class ApiError(CompletionError):
    """The endpoint answered with a non-success status code"""

    def __init__(self, status: int, body: str):
        self.status = status
        self.body = body
        super().__init__(f"LLM API error {status}: {body}")


class ProtocolError(CompletionError):
    """The response body did not have the expected chat completion shape"""


class CompletionClient:
    """Sends a whole conversation to an OpenAI-compatible endpoint."""

    def __init__(
        self,
        endpoint: str,
        model: str,
        api_key: str = "",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.model = model
        event_hooks = {}
        if not api_key:
            # The SDK insists on a key, so strip the placeholder before sending
            event_hooks["request"] = [_drop_authorization]
        self.client = AsyncOpenAI(
            base_url=endpoint,
            api_key=api_key or NO_API_KEY,
            timeout=timeout,
            max_retries=0,
            http_client=DefaultAsyncHttpxClient(
                transport=transport, event_hooks=event_hooks
            ),
        )

    async def complete(self, conversation: list[ChatCompletionMessageParam]) -> str:
        """Returns the first choice's content, or raises a CompletionError."""
        if not conversation:
            raise ValueError("conversation must contain at least the system turn")

        try:
            completion = await self.client.chat.completions.create(
                model=self.model,
                messages=list(conversation),
                stream=False,
            )
        except APIConnectionError as e:  # Includes APITimeoutError
            raise TransportError(str(e)) from e
        except APIStatusError as e:
            raise ApiError(e.status_code, e.response.text) from e
        except (APIResponseValidationError, ValueError) as e:
            raise ProtocolError(f"Failed to parse LLM response: {e}") from e

        # Non-JSON bodies come back from the SDK as plain text
        choices = getattr(completion, "choices", None)
        if not choices:
            raise ProtocolError("No response from LLM")
        message = getattr(choices[0], "message", None)
        content = getattr(message, "content", None)
        if not isinstance(content, str):
            raise ProtocolError("Failed to parse LLM response: missing message content")
        return content

    async def close(self):
        """Closes the underlying HTTP connection pool."""
        await self.client.close()
