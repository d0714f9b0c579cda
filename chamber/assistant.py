"""Chat assistant: general vs. analyst routing, low-confidence fallback offers."""

import asyncio
import logging
from typing import Protocol

from config.config_loader import ModelConfig, PromptsConfig
from chamber.context import analyst_context
from chamber.creative import CreativeGenerationFallback
from chamber.models import (
    ChatMessage,
    ContentPart,
    Deliberation,
    FallbackAction,
    GenerateImage,
    GenerateVideo,
    GenerationRequest,
    Sender,
)
from chamber.personas import PersonaRegistry
from chamber.providers.base import LanguageModelClient, ServiceError

logger = logging.getLogger(__name__)

GREETING = "Hello! How can I help you today?"
EMPTY_ANSWER = "Sorry, I couldn't generate a response."


class LowConfidenceClassifier(Protocol):
    def is_low_confidence(self, text: str) -> bool: ...


class KeywordClassifier:
    """Flags an answer as low confidence when it contains any keyword (case-insensitive)."""

    def __init__(self, keywords: list[str]) -> None:
        self._keywords = [k.lower() for k in keywords if k]

    def is_low_confidence(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self._keywords)


def mode_notice(deliberation: Deliberation | None) -> str:
    if deliberation is None:
        return "I am in General Assistant mode. Ask me anything, or start a new deliberation."
    return (
        f'I\'m now in Council Analyst mode, focused on the deliberation: "{deliberation.title}". '
        "Ask me anything about it."
    )


class AssistantRouter:
    """Picks framing and tool policy per message and offers creative fallbacks.

    General mode (no active deliberation) answers freely with search enabled.
    Analyst mode answers only from the active deliberation's record and never
    searches or offers fallbacks.
    """

    def __init__(
        self,
        client: LanguageModelClient,
        registry: PersonaRegistry,
        prompts: PromptsConfig,
        model: ModelConfig,
        classifier: LowConfidenceClassifier,
    ) -> None:
        self._client = client
        self._registry = registry
        self._prompts = prompts
        self._model = model
        self._classifier = classifier

    def build_request(self, message: str, active: Deliberation | None) -> GenerationRequest:
        if active is None:
            return GenerationRequest(
                model_id=self._model.model,
                content_parts=(ContentPart.from_text(message),),
                system_instruction=self._prompts.general,
                enable_search_tool=True,
            )
        return GenerationRequest(
            model_id=self._model.model,
            content_parts=(ContentPart.from_text(analyst_context(active, self._registry, message)),),
            system_instruction=self._prompts.analyst,
            enable_search_tool=False,
        )

    async def handle(self, message: str, active: Deliberation | None) -> ChatMessage:
        request = self.build_request(message, active)
        try:
            response = await self._client.generate(request)
        except ServiceError as exc:
            logger.warning("Assistant call failed: %s", exc)
            return ChatMessage(sender=Sender.ASSISTANT, text=f"An error occurred: {exc}")

        text = response.text or EMPTY_ANSWER

        if active is None and self._classifier.is_low_confidence(text):
            logger.info("Low-confidence answer, offering creative fallbacks")
            return ChatMessage(
                sender=Sender.ASSISTANT,
                text=text,
                prompt=message,
                actions=(GenerateImage(message), GenerateVideo(message)),
            )
        return ChatMessage(sender=Sender.ASSISTANT, text=text)


class ChatSession:
    """Append-only chat transcript for one process, with a fallback command queue."""

    def __init__(self, router: AssistantRouter, fallback: CreativeGenerationFallback) -> None:
        self._router = router
        self._fallback = fallback
        self._messages: list[ChatMessage] = [ChatMessage(sender=Sender.ASSISTANT, text=GREETING)]
        self._pending: asyncio.Queue[FallbackAction] = asyncio.Queue()
        self.active: Deliberation | None = None

    @property
    def messages(self) -> tuple[ChatMessage, ...]:
        return tuple(self._messages)

    def set_active(self, deliberation: Deliberation | None) -> ChatMessage:
        """Switch framing for later answers. Earlier messages are kept."""
        self.active = deliberation
        notice = ChatMessage(sender=Sender.SYSTEM, text=mode_notice(deliberation))
        self._messages.append(notice)
        return notice

    async def send(self, text: str) -> ChatMessage:
        self._messages.append(ChatMessage(sender=Sender.USER, text=text))
        reply = await self._router.handle(text, self.active)
        self._messages.append(reply)
        return reply

    def request(self, action: FallbackAction) -> None:
        self._pending.put_nowait(action)

    async def process_pending(self) -> list[ChatMessage]:
        """Run every queued fallback command in order and append the results."""
        results: list[ChatMessage] = []
        while not self._pending.empty():
            action = self._pending.get_nowait()
            message = await self._fallback.run(action)
            self._messages.append(message)
            results.append(message)
            self._pending.task_done()
        return results
