"""Deliberation orchestration: sequential persona turns, context growth, chair synthesis."""

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timezone

from config.config_loader import ModelConfig, PromptsConfig
from chamber.context import build_turn, initial_parts, minute_record, turn_instruction
from chamber.history import HistoryStore
from chamber.models import (
    Attachment,
    ContentPart,
    Deliberation,
    DeliberationMode,
    GenerationRequest,
    Minute,
)
from chamber.personas import PersonaRegistry
from chamber.providers.base import EmptyOutputError, LanguageModelClient, ServiceError

logger = logging.getLogger(__name__)

SYSTEM_PERSONA_ID = "system"

_TITLE_LENGTH = 25


class ValidationError(ValueError):
    """Raised when a proposal is rejected before a run starts."""


# Events. Each carries the snapshot as it stands after the event.

@dataclass(frozen=True)
class TurnStarted:
    persona_id: str
    round: int
    deliberation: Deliberation


@dataclass(frozen=True)
class MinuteAdded:
    minute: Minute
    deliberation: Deliberation


@dataclass(frozen=True)
class RunFailed:
    error: str
    minute: Minute | None   # None when the chair synthesis failed
    deliberation: Deliberation


@dataclass(frozen=True)
class RunFinalized:
    final_decision: str
    deliberation: Deliberation


DeliberationEvent = TurnStarted | MinuteAdded | RunFailed | RunFinalized


def apply_event(deliberation: Deliberation, event: DeliberationEvent) -> Deliberation:
    """Fold one event into a caller-held snapshot."""
    if isinstance(event, MinuteAdded):
        return replace(deliberation, minutes=(*deliberation.minutes, event.minute))
    if isinstance(event, RunFailed):
        if event.minute is not None:
            return replace(deliberation, minutes=(*deliberation.minutes, event.minute))
        return replace(deliberation, synthesis_error=event.error)
    if isinstance(event, RunFinalized):
        if deliberation.final_decision is not None:
            raise ValueError(f"Deliberation {deliberation.id} already has a final decision")
        return replace(deliberation, final_decision=event.final_decision)
    return deliberation


def start_deliberation(
    prompt: str,
    attachments: tuple[Attachment, ...] | list[Attachment] = (),
    mode: DeliberationMode | str = DeliberationMode.FULL,
    now: datetime | None = None,
) -> Deliberation:
    """Create the empty record for a new proposal.

    Raises:
        ValidationError: If there is neither prompt text nor an attachment.
    """
    attachments = tuple(attachments)
    if not prompt.strip() and not attachments:
        raise ValidationError("A proposal needs text or at least one attachment")

    title = prompt[:_TITLE_LENGTH] + "..." if prompt.strip() else attachments[0].name
    return Deliberation(
        id=f"delib_{uuid.uuid4().hex[:12]}",
        title=title,
        prompt=prompt,
        mode=DeliberationMode(mode),
        created_at=now or datetime.now(timezone.utc),
        attachments=attachments,
    )


def _emit(on_event: Callable[[DeliberationEvent], None] | None, event: DeliberationEvent) -> None:
    if on_event:
        on_event(event)


class DeliberationOrchestrator:
    """Round/persona state machine driving one language model client.

    Exactly one model call is outstanding at a time. Every finished run,
    successful or not, is upserted into the history store.
    """

    def __init__(
        self,
        client: LanguageModelClient,
        registry: PersonaRegistry,
        prompts: PromptsConfig,
        model: ModelConfig,
        history: HistoryStore,
    ) -> None:
        self._client = client
        self._registry = registry
        self._prompts = prompts
        self._model = model
        self._history = history
        # In-flight progress markers, None when idle
        self.active_persona_id: str | None = None
        self.active_round: int | None = None

    def _request(self, parts: tuple[ContentPart, ...], system_instruction: str, search: bool) -> GenerationRequest:
        return GenerationRequest(
            model_id=self._model.model,
            content_parts=parts,
            system_instruction=system_instruction,
            enable_search_tool=search,
            compute_budget=self._model.thinking_budget,
        )

    async def _generate_text(self, request: GenerationRequest, speaker: str) -> str:
        response = await self._client.generate(request)
        if not response.text or not response.text.strip():
            raise EmptyOutputError(f"{speaker} produced no text")
        return response.text

    async def run(
        self,
        prompt: str,
        attachments: tuple[Attachment, ...] | list[Attachment] = (),
        mode: DeliberationMode | str = DeliberationMode.FULL,
        on_event: Callable[[DeliberationEvent], None] | None = None,
    ) -> Deliberation:
        """Run a full deliberation and store the result.

        Args:
            prompt: The user's proposal text.
            attachments: Images and files attached to the proposal.
            mode: Participant/round policy.
            on_event: Optional callback invoked with each progress event.

        Returns:
            The final Deliberation snapshot (partial if a turn failed).

        Raises:
            ValidationError: If the proposal is empty.
        """
        deliberation = start_deliberation(prompt, attachments, mode)
        try:
            deliberation = await self._deliberate(deliberation, on_event)
        finally:
            self.active_persona_id = None
            self.active_round = None

        self._history.upsert(deliberation)
        self._history.save()
        return deliberation

    async def _deliberate(
        self,
        deliberation: Deliberation,
        on_event: Callable[[DeliberationEvent], None] | None,
    ) -> Deliberation:
        participants, rounds = self._registry.resolve(deliberation.mode)
        accumulated = initial_parts(deliberation.prompt, deliberation.attachments, self._prompts)

        logger.info(
            "Starting deliberation %s: mode=%s, %d personas, %d rounds",
            deliberation.id,
            deliberation.mode.value,
            len(participants),
            rounds,
        )

        for round_num in range(1, rounds + 1):
            self.active_round = round_num
            for persona in participants:
                self.active_persona_id = persona.id
                _emit(on_event, TurnStarted(persona.id, round_num, deliberation))

                request = self._request(
                    build_turn(accumulated, turn_instruction(persona, round_num, self._prompts)),
                    persona.role_instruction,
                    search=True,
                )
                try:
                    text = await self._generate_text(request, persona.display_name)
                except (ServiceError, EmptyOutputError) as exc:
                    logger.warning(
                        "Deliberation %s aborted at %s, round %d: %s",
                        deliberation.id, persona.id, round_num, exc,
                    )
                    error_minute = Minute(SYSTEM_PERSONA_ID, round_num, str(exc), is_error=True)
                    deliberation = replace(deliberation, minutes=(*deliberation.minutes, error_minute))
                    _emit(on_event, RunFailed(str(exc), error_minute, deliberation))
                    return deliberation

                minute = Minute(persona.id, round_num, text)
                deliberation = replace(deliberation, minutes=(*deliberation.minutes, minute))
                accumulated = (*accumulated, minute_record(persona, minute, self._prompts))
                logger.debug("Minute %d recorded: %s, round %d", len(deliberation.minutes), persona.id, round_num)
                _emit(on_event, MinuteAdded(minute, deliberation))

        self.active_persona_id = None
        logger.info("Running chair synthesis for %s", deliberation.id)
        request = self._request(build_turn(accumulated, self._prompts.synthesis), self._prompts.chair, search=False)
        try:
            decision = await self._generate_text(request, "Chair")
        except (ServiceError, EmptyOutputError) as exc:
            logger.warning("Chair synthesis failed for %s: %s", deliberation.id, exc)
            deliberation = replace(deliberation, synthesis_error=str(exc))
            _emit(on_event, RunFailed(str(exc), None, deliberation))
            return deliberation

        deliberation = replace(deliberation, final_decision=decision)
        _emit(on_event, RunFinalized(decision, deliberation))
        logger.info("Deliberation %s finalized with %d minutes", deliberation.id, len(deliberation.minutes))
        return deliberation
