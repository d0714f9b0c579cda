"""Creative fallback: wireframe images and video concepts from a chat prompt."""

import logging

from config.config_loader import ModelConfig, PromptsConfig
from chamber.models import (
    ChatMessage,
    ContentPart,
    CreativeKind,
    FallbackAction,
    GenerationRequest,
    Sender,
)
from chamber.providers.base import EmptyOutputError, LanguageModelClient, ServiceError

logger = logging.getLogger(__name__)


class CreativeGenerationFallback:
    def __init__(self, client: LanguageModelClient, prompts: PromptsConfig, model: ModelConfig) -> None:
        self._client = client
        self._prompts = prompts
        self._model = model

    async def generate(self, kind: CreativeKind, source_prompt: str) -> ChatMessage:
        """Generate one piece of creative content.

        Raises:
            ServiceError: If the model call fails.
            EmptyOutputError: If the call returned no image (image) or no text (video).
        """
        if kind == CreativeKind.IMAGE:
            request = GenerationRequest(
                model_id=self._model.image_model or self._model.model,
                content_parts=(ContentPart.from_text(self._prompts.wireframe.format(prompt=source_prompt)),),
                image_output=True,
            )
            response = await self._client.generate(request)
            if not response.binary_parts:
                raise EmptyOutputError("No image was generated.")
            return ChatMessage(
                sender=Sender.ASSISTANT,
                text="Here is the wireframe I came up with:",
                image=response.binary_parts[0],
            )

        request = GenerationRequest(
            model_id=self._model.model,
            content_parts=(ContentPart.from_text(self._prompts.video.format(prompt=source_prompt)),),
        )
        response = await self._client.generate(request)
        if not response.text:
            raise EmptyOutputError("No video concept was generated.")
        return ChatMessage(sender=Sender.ASSISTANT, text=f"Here's a video concept:\n\n{response.text}")

    async def run(self, action: FallbackAction) -> ChatMessage:
        """Dispatch a fallback command. Never raises for model failures."""
        try:
            return await self.generate(action.kind, action.prompt)
        except (ServiceError, EmptyOutputError) as exc:
            logger.warning("Creative %s generation failed: %s", action.kind.value, exc)
            return ChatMessage(
                sender=Sender.ASSISTANT,
                text=f"Sorry, I couldn't generate the creative content. {exc}",
            )
