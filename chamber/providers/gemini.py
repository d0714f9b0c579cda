"""Gemini backend using google-genai SDK with native async."""

import asyncio
import logging
import os
import time

from google import genai
from google.genai import types as genai_types

from config.config_loader import ModelConfig
from chamber.models import ContentPart, GenerationRequest, GenerationResponse
from chamber.providers.base import LanguageModelClient, ServiceError

logger = logging.getLogger(__name__)


def _to_parts(content_parts: tuple[ContentPart, ...]) -> list[genai_types.Part]:
    parts: list[genai_types.Part] = []
    for part in content_parts:
        if part.is_binary:
            parts.append(genai_types.Part.from_bytes(data=part.binary_data, mime_type=part.mime_type))
        else:
            parts.append(genai_types.Part.from_text(text=part.text or ""))
    return parts


def _build_config(request: GenerationRequest, max_tokens: int | None) -> genai_types.GenerateContentConfig:
    tools = [genai_types.Tool(google_search=genai_types.GoogleSearch())] if request.enable_search_tool else None
    thinking = (
        genai_types.ThinkingConfig(thinking_budget=request.compute_budget)
        if request.compute_budget is not None
        else None
    )
    return genai_types.GenerateContentConfig(
        system_instruction=request.system_instruction,
        tools=tools,
        thinking_config=thinking,
        max_output_tokens=max_tokens,
        response_modalities=["TEXT", "IMAGE"] if request.image_output else None,
    )


def _parse_response(response: genai_types.GenerateContentResponse) -> GenerationResponse:
    """Collect text and inline binary parts from the first candidate."""
    if not response.candidates or response.candidates[0].content is None:
        return GenerationResponse()

    texts: list[str] = []
    binaries: list[ContentPart] = []
    for part in response.candidates[0].content.parts or []:
        if part.thought:
            continue
        if part.text:
            texts.append(part.text)
        elif part.inline_data is not None and part.inline_data.data:
            binaries.append(
                ContentPart.from_bytes(part.inline_data.data, part.inline_data.mime_type or "application/octet-stream")
            )

    return GenerationResponse(text="".join(texts) or None, binary_parts=tuple(binaries))


class GeminiClient(LanguageModelClient):
    """Google Gemini backend via google-genai SDK."""

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ServiceError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    def model_string(self) -> str:
        return self._config.model

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=request.model_id,
                    contents=[genai_types.Content(role="user", parts=_to_parts(request.content_parts))],
                    config=_build_config(request, self._config.max_tokens),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ServiceError(self._config.name, f"Request timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ServiceError(self._config.name, f"API call failed: {exc}") from exc

        latency = time.monotonic() - start
        result = _parse_response(response)

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info(
            "Gemini %s: %.2fs, %s tokens, %d binary parts",
            request.model_id,
            latency,
            token_count,
            len(result.binary_parts),
        )
        return result
