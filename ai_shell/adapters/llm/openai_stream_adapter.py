"""
OpenAI adapter producing the raw server-sent-event body of a streamed chat completion.
"""

import json
import logging
from typing import Any, Callable, Iterator, Optional, cast

import openai
from openai import OpenAI
from openai.types.chat import ChatCompletionMessageParam

from ai_shell.exceptions import KnownError, LLMError
from ai_shell.ports.llm.completion_port import GenerationRequest

DEFAULT_MODEL = "gpt-4o-mini"
MAX_COMPLETIONS = 10

RATE_LIMIT_HELP = (
    "Request to OpenAI failed with status 429. This is due to incorrect billing "
    "setup or excessive quota usage. Please follow this guide to fix it: "
    "https://help.openai.com/en/articles/6891831-error-code-429-you-exceeded-your-current-quota-please-check-your-plan-and-billing-details\n\n"
    "You can activate billing here: https://platform.openai.com/account/billing/overview . "
    "Make sure to add a payment method if not under an active grant from OpenAI.\n\n"
    "Full message from OpenAI:"
)


def _format_body(error: "openai.APIStatusError") -> str:
    body: Any = error.body
    if body is None:
        try:
            body = error.response.text
        except Exception:
            body = None
        if isinstance(body, str):
            # Usually JSON, occasionally an HTML error page
            try:
                body = json.loads(body)
            except ValueError:
                pass
    if body is None:
        return ""
    if isinstance(body, str):
        return body
    return json.dumps(body, indent=2)


def classify_error(error: Exception) -> Exception:
    """
    Map an OpenAI client failure to a user-facing error.

    Args:
        error: The exception raised by the OpenAI client

    Returns:
        A KnownError for classified failures, the original error otherwise
    """
    if isinstance(error, openai.APIConnectionError):
        host = "the API endpoint"
        try:
            host = error.request.url.host or host
        except Exception:
            pass
        return KnownError(
            f"Error connecting to {host} ({error.message}). "
            "Are you connected to the internet?",
            code="ENOTFOUND",
        )
    if isinstance(error, openai.RateLimitError):
        return KnownError(
            f"{RATE_LIMIT_HELP}\n\n{_format_body(error)}\n", code="429"
        )
    if isinstance(error, openai.APIStatusError):
        return KnownError(
            f"Request to OpenAI failed with status {error.status_code}:\n\n"
            f"{_format_body(error)}\n",
            code=str(error.status_code),
        )
    return error


class OpenAIStreamAdapter:
    """Issue streamed chat completions and yield the response body as text."""

    def __init__(
        self,
        client_factory: Callable[..., OpenAI] = OpenAI,
        logger: Optional[logging.Logger] = None,
    ):
        """
        Initialize the adapter.

        Args:
            client_factory: Builds an OpenAI client from api_key/base_url
            logger: Logger instance to use for logging. If None, a default logger will be created.
        """
        self._client_factory = client_factory
        self._logger: logging.Logger = logger or logging.getLogger(__name__)

    def iter_chunks(self, request: GenerationRequest) -> Iterator[str]:
        """
        Stream a completion.

        Args:
            request: The generation request

        Yields:
            Raw text chunks of the event-stream body

        Raises:
            KnownError: For connection, quota and HTTP status failures
            LLMError: For any other client failure
        """
        client = self._client_factory(
            api_key=request.key,
            base_url=request.api_endpoint or None,
            max_retries=0,
        )
        messages = cast(list[ChatCompletionMessageParam], request.messages())
        number = min(max(request.number, 1), MAX_COMPLETIONS)
        self._logger.info(
            f"Requesting streamed completion from {request.model or DEFAULT_MODEL}"
        )
        try:
            with client.chat.completions.with_streaming_response.create(
                model=request.model or DEFAULT_MODEL,
                messages=messages,
                n=number,
                stream=True,
            ) as response:
                for text in response.iter_text():
                    if text:
                        yield text
        except openai.OpenAIError as e:
            classified = classify_error(e)
            if classified is e:
                raise LLMError(f"Failed to generate completion: {str(e)}") from e
            raise classified from e
        self._logger.info("Streamed completion finished")
