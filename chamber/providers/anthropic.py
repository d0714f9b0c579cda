"""Anthropic Claude backend using anthropic SDK with native async."""

import asyncio
import base64
import logging
import os
import time

import anthropic as anthropic_sdk

from config.config_loader import ModelConfig
from chamber.models import ContentPart, GenerationRequest, GenerationResponse
from chamber.providers.base import LanguageModelClient, ServiceError

logger = logging.getLogger(__name__)

_DEFAULT_MAX_TOKENS = 8192
_WEB_SEARCH_TOOL = {"type": "web_search_20250305", "name": "web_search", "max_uses": 5}


def _to_blocks(content_parts: tuple[ContentPart, ...]) -> list[dict]:
    blocks: list[dict] = []
    for part in content_parts:
        if not part.is_binary:
            blocks.append({"type": "text", "text": part.text or ""})
            continue
        encoded = base64.standard_b64encode(part.binary_data).decode("ascii")
        block_type = "document" if part.mime_type == "application/pdf" else "image"
        blocks.append(
            {
                "type": block_type,
                "source": {"type": "base64", "media_type": part.mime_type, "data": encoded},
            }
        )
    return blocks


class AnthropicClient(LanguageModelClient):
    """Anthropic Claude backend via anthropic SDK. Text output only."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ServiceError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = anthropic_sdk.AsyncAnthropic(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    def _request_kwargs(self, request: GenerationRequest) -> dict:
        # max_tokens must exceed the thinking budget
        max_tokens = (self._config.max_tokens or _DEFAULT_MAX_TOKENS) + (request.compute_budget or 0)
        kwargs: dict = {
            "model": request.model_id,
            "max_tokens": max_tokens,
            "messages": [{"role": "user", "content": _to_blocks(request.content_parts)}],
        }
        if request.system_instruction:
            kwargs["system"] = request.system_instruction
        if request.enable_search_tool:
            kwargs["tools"] = [_WEB_SEARCH_TOOL]
        if request.compute_budget:
            kwargs["thinking"] = {"type": "enabled", "budget_tokens": request.compute_budget}
        return kwargs

    async def _stream_message(self, kwargs: dict):
        # The SDK refuses non-streaming calls whose max_tokens could run past 10 minutes
        async with self._client.messages.stream(**kwargs) as stream:
            return await stream.get_final_message()

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        if request.image_output:
            logger.warning("Claude cannot produce images; returning text only")

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._stream_message(self._request_kwargs(request)),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ServiceError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ServiceError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start

        text_blocks = [b.text for b in response.content or [] if b.type == "text"]

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.input_tokens + response.usage.output_tokens

        logger.info("Anthropic %s: %.2fs, %s tokens", request.model_id, latency, token_count)

        return GenerationResponse(text="\n".join(text_blocks) or None)
