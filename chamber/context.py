"""Conversation context assembly: ordered content parts for each model call.

Everything here is pure. Accumulated context is a tuple; each helper returns
a new tuple and never reorders what came before.
"""

from config.config_loader import PromptsConfig
from chamber.models import Attachment, AttachmentKind, ContentPart, Deliberation, Minute, Persona
from chamber.personas import PersonaRegistry


def initial_parts(
    prompt: str,
    attachments: tuple[Attachment, ...],
    prompts: PromptsConfig,
) -> tuple[ContentPart, ...]:
    """Seed context: proposal text, then the image (if any), then a note naming other files."""
    parts: list[ContentPart] = [ContentPart.from_text(prompts.proposal.format(proposal=prompt))]

    image = next((a for a in attachments if a.kind == AttachmentKind.IMAGE), None)
    if image is not None and image.binary_data and image.mime_type:
        parts.append(ContentPart.from_bytes(image.binary_data, image.mime_type))

    file_names = [a.name for a in attachments if a.kind != AttachmentKind.IMAGE]
    if file_names:
        parts.append(ContentPart.from_text(prompts.attachments_note.format(names=", ".join(file_names))))

    return tuple(parts)


def build_turn(accumulated: tuple[ContentPart, ...], instruction: str) -> tuple[ContentPart, ...]:
    return (*accumulated, ContentPart.from_text(instruction))


def turn_instruction(persona: Persona, round_number: int, prompts: PromptsConfig) -> str:
    return prompts.turn.format(name=persona.display_name, round=round_number)


def minute_record(persona: Persona, minute: Minute, prompts: PromptsConfig) -> ContentPart:
    """Text part appended after a minute so later speakers see it verbatim."""
    return ContentPart.from_text(
        prompts.minute_record.format(name=persona.display_name, round=minute.round, text=minute.text)
    )


def analyst_context(deliberation: Deliberation, registry: PersonaRegistry, question: str) -> str:
    """Structured block for context-restricted answers about one deliberation."""
    lines = [
        "CONTEXT:",
        f"- Deliberation Title: {deliberation.title}",
        f"- Initial Prompt: {deliberation.prompt}",
        "- Minutes:",
    ]
    for minute in deliberation.minutes:
        name = "System" if minute.is_error else registry.display_name(minute.persona_id)
        lines.append(f'  - {name}: "{minute.text}"')
    if deliberation.final_decision is not None:
        lines.append(f"- Final Decision: {deliberation.final_decision}")
    lines.append("")
    lines.append(f"QUESTION: {question}")
    return "\n".join(lines)
