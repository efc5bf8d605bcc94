"""
OpenRouter client built on the OpenAI SDK.

OpenRouter exposes an OpenAI-compatible API, so every provider in the
ladder is reached through one client with a different model id. SDK
exceptions are mapped to the pipeline's error taxonomy here and nowhere
else.
"""

import logging
from typing import Any, Dict, List, Optional

import openai
from openai import OpenAI

from nevra.config import get_config
from nevra.errors import (
    EmptyResponseError,
    NetworkError,
    UpstreamMalformedResponseError,
    UpstreamQuotaError,
    UpstreamTimeoutError,
    classify_upstream_error,
)
from nevra.llm.json_parsing import parse_backend_content
from nevra.schemas import BackendCall, BackendPayload


logger = logging.getLogger(__name__)

# Completion ceilings tried in turn when a provider rejects a call for credits
CREDIT_RETRY_STEPS = (1.0, 0.75, 0.5, 0.25)


def build_messages(call: BackendCall) -> List[Dict[str, Any]]:
    """
    Build chat messages: system prompt, history, then the user prompt.

    Images are sent as image_url parts after the text part.
    """
    messages: List[Dict[str, Any]] = [{"role": "system", "content": call.system_prompt}]

    for turn in call.history:
        messages.append({"role": turn.role, "content": turn.prompt_text()})

    if call.images:
        content: List[Dict[str, Any]] = [{"type": "text", "text": call.prompt}]
        for image in call.images:
            content.append({"type": "image_url", "image_url": {"url": image}})
        messages.append({"role": "user", "content": content})
    else:
        messages.append({"role": "user", "content": call.prompt})

    return messages


def _status_detail(error: openai.APIStatusError) -> str:
    body = getattr(error, "body", None)
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict) and inner.get("message"):
            return str(inner["message"])
        if isinstance(inner, str):
            return inner
    return str(getattr(error, "message", "") or error)


class OpenRouterClient:
    """Chat backend that talks to OpenRouter."""

    def __init__(self, client: Optional[OpenAI] = None):
        if client is None:
            config = get_config()
            client = OpenAI(
                api_key=config.openrouter_api_key,
                base_url=config.openrouter_base_url,
                default_headers={
                    "HTTP-Referer": config.openrouter_site_url,
                    "X-Title": config.openrouter_site_name,
                },
                max_retries=0,
            )
        self.client = client

    def complete(self, call: BackendCall) -> BackendPayload:
        """
        Run one attempt against the call's provider.

        Args:
            call: Fully prepared backend call

        Returns:
            BackendPayload with prose/markup content or multi-file files

        Raises:
            UpstreamError: A subclass describing the failure
        """
        last_error: Optional[UpstreamQuotaError] = None

        for step in CREDIT_RETRY_STEPS:
            max_tokens = max(1, int(call.max_tokens * step))
            try:
                content = self._create(call, max_tokens)
            except UpstreamQuotaError as e:
                if e.kind != UpstreamQuotaError.CREDIT:
                    raise
                logger.info(
                    "[%s] credit rejection at max_tokens=%d, retrying lower", call.provider.id, max_tokens
                )
                last_error = e
                continue
            return parse_backend_content(content)

        raise last_error

    def _create(self, call: BackendCall, max_tokens: int) -> str:
        provider = call.provider
        try:
            response = self.client.chat.completions.create(
                model=provider.model,
                messages=build_messages(call),
                temperature=call.temperature,
                max_tokens=max_tokens,
                timeout=provider.timeout_seconds,
            )
        except openai.APITimeoutError as e:
            raise UpstreamTimeoutError(
                f"{provider.display_name} timed out after {provider.timeout_seconds:.0f}s",
                provider_id=provider.id,
            ) from e
        except openai.APIConnectionError as e:
            raise NetworkError(f"Could not reach OpenRouter: {e}", provider_id=provider.id) from e
        except openai.APIStatusError as e:
            raise classify_upstream_error(e.status_code, _status_detail(e), provider_id=provider.id) from e

        choices = getattr(response, "choices", None)
        if not choices or getattr(choices[0], "message", None) is None:
            raise UpstreamMalformedResponseError(
                f"{provider.display_name} response missing content", provider_id=provider.id
            )

        content = choices[0].message.content
        if content is None:
            raise UpstreamMalformedResponseError(
                f"{provider.display_name} response missing content", provider_id=provider.id
            )
        if not content.strip():
            raise EmptyResponseError(
                f"{provider.display_name} returned an empty response", provider_id=provider.id
            )
        return content

