"""Dataclasses for the council chamber: personas, deliberations, chat. No logic, no deps."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import ClassVar


class DeliberationMode(str, Enum):
    FULL = "full"
    SINGLE_PERSONA = "single"
    DEBATE = "debate"


class AttachmentKind(str, Enum):
    IMAGE = "image"
    FILE = "file"


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class CreativeKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"


@dataclass(frozen=True)
class Persona:
    id: str
    display_name: str
    title: str
    role_instruction: str
    avatar: str = ""      # display only
    color: str = ""       # display only


@dataclass(frozen=True)
class ContentPart:
    """One element of a model request: either text or binary data."""

    text: str | None = None
    binary_data: bytes | None = None
    mime_type: str | None = None

    @classmethod
    def from_text(cls, text: str) -> "ContentPart":
        return cls(text=text)

    @classmethod
    def from_bytes(cls, data: bytes, mime_type: str) -> "ContentPart":
        return cls(binary_data=data, mime_type=mime_type)

    @property
    def is_binary(self) -> bool:
        return self.binary_data is not None


@dataclass(frozen=True)
class GenerationRequest:
    model_id: str
    content_parts: tuple[ContentPart, ...]
    system_instruction: str | None = None
    enable_search_tool: bool = False
    compute_budget: int | None = None   # opaque thinking allowance, passed through
    image_output: bool = False


@dataclass(frozen=True)
class GenerationResponse:
    text: str | None = None
    binary_parts: tuple[ContentPart, ...] = ()


@dataclass(frozen=True)
class Attachment:
    name: str
    kind: AttachmentKind
    binary_data: bytes | None = None
    mime_type: str | None = None


@dataclass(frozen=True)
class Minute:
    persona_id: str
    round: int
    text: str
    is_error: bool = False


@dataclass(frozen=True)
class Deliberation:
    id: str
    title: str
    prompt: str
    mode: DeliberationMode
    created_at: datetime
    attachments: tuple[Attachment, ...] = ()
    minutes: tuple[Minute, ...] = ()
    final_decision: str | None = None
    synthesis_error: str | None = None


@dataclass(frozen=True)
class FallbackAction:
    """Follow-up command offered when the assistant's answer looks unsatisfying."""

    kind: ClassVar[CreativeKind]
    label: ClassVar[str]

    prompt: str


@dataclass(frozen=True)
class GenerateImage(FallbackAction):
    kind: ClassVar[CreativeKind] = CreativeKind.IMAGE
    label: ClassVar[str] = "Generate Wireframe"


@dataclass(frozen=True)
class GenerateVideo(FallbackAction):
    kind: ClassVar[CreativeKind] = CreativeKind.VIDEO
    label: ClassVar[str] = "Generate Video Concept"


@dataclass(frozen=True)
class ChatMessage:
    sender: Sender
    text: str
    image: ContentPart | None = None
    prompt: str | None = None   # original user message the actions are bound to
    actions: tuple[FallbackAction, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class User:
    name: str
    avatar_ref: str
