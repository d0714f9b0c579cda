"""Load settings.yaml into typed dataclasses. Validates API keys at startup."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

_DEFAULT_CONFUSED_KEYWORDS = ["sorry", "don't understand", "not sure how"]


@dataclass
class ModelConfig:
    name: str
    sdk: str
    model: str
    api_key_env: str
    timeout_sec: int
    max_tokens: int | None = None
    thinking_budget: int | None = None
    image_model: str | None = None


@dataclass
class PersonaConfig:
    id: str
    name: str
    title: str
    instruction: str
    avatar: str = ""
    color: str = ""


@dataclass
class ModesConfig:
    single_persona: str
    debate_pair: list[str] = field(default_factory=list)


@dataclass
class PromptsConfig:
    proposal: str
    attachments_note: str
    turn: str
    minute_record: str
    synthesis: str
    chair: str
    general: str
    analyst: str
    wireframe: str
    video: str


@dataclass
class AssistantConfig:
    confused_keywords: list[str] = field(default_factory=lambda: list(_DEFAULT_CONFUSED_KEYWORDS))


@dataclass
class DefaultsConfig:
    backend: str
    mode: str
    history_path: Path
    user_path: Path
    output_dir: Path
    inbox_dir: Path
    archive_dir: Path


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    models: dict[str, ModelConfig]
    personas: list[PersonaConfig]
    modes: ModesConfig
    prompts: PromptsConfig
    assistant: AssistantConfig = field(default_factory=AssistantConfig)
    available_backends: set[str] = field(default_factory=set)


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if settings file missing.
    Logs missing API keys but does not raise; callers check
    available_backends before building a client.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        backend=str(defaults_raw["backend"]),
        mode=str(defaults_raw.get("mode", "full")),
        history_path=Path(defaults_raw["history_path"]),
        user_path=Path(defaults_raw["user_path"]),
        output_dir=Path(defaults_raw["output_dir"]),
        inbox_dir=Path(defaults_raw.get("inbox_dir", "./inbox")),
        archive_dir=Path(defaults_raw.get("archive_dir", "./inbox/archive")),
    )

    personas = [
        PersonaConfig(
            id=str(p["id"]),
            name=str(p["name"]),
            title=str(p["title"]),
            instruction=str(p["instruction"]).strip(),
            avatar=str(p.get("avatar", "")),
            color=str(p.get("color", "")),
        )
        for p in raw["personas"]
    ]

    modes_raw = raw["modes"]
    modes = ModesConfig(
        single_persona=str(modes_raw["single_persona"]),
        debate_pair=[str(p) for p in modes_raw["debate_pair"]],
    )

    prompts_raw = raw["prompts"]
    prompts = PromptsConfig(
        proposal=prompts_raw["proposal"],
        attachments_note=prompts_raw["attachments_note"],
        turn=prompts_raw["turn"],
        minute_record=prompts_raw["minute_record"],
        synthesis=prompts_raw["synthesis"],
        chair=prompts_raw["chair"],
        general=prompts_raw["general"],
        analyst=str(prompts_raw["analyst"]).strip(),
        wireframe=prompts_raw["wireframe"],
        video=prompts_raw["video"],
    )

    assistant_raw = raw.get("assistant") or {}
    assistant = AssistantConfig(
        confused_keywords=[
            str(k) for k in assistant_raw.get("confused_keywords", _DEFAULT_CONFUSED_KEYWORDS)
        ],
    )

    models: dict[str, ModelConfig] = {}
    available_backends: set[str] = set()

    for backend_name, model_raw in raw["models"].items():
        model_cfg = ModelConfig(
            name=backend_name,
            sdk=model_raw["sdk"],
            model=model_raw["model"],
            api_key_env=model_raw["api_key_env"],
            timeout_sec=int(model_raw["timeout_sec"]),
            max_tokens=_optional_int(model_raw.get("max_tokens")),
            thinking_budget=_optional_int(model_raw.get("thinking_budget")),
            image_model=model_raw.get("image_model"),
        )
        models[backend_name] = model_cfg

        api_key = os.environ.get(model_raw["api_key_env"], "").strip()
        if api_key:
            available_backends.add(backend_name)
            logger.info("Backend available: %s", backend_name)
        else:
            logger.info(
                "Backend skipped (no API key): %s, set %s in .env",
                backend_name,
                model_raw["api_key_env"],
            )

    return AppConfig(
        defaults=defaults,
        models=models,
        personas=personas,
        modes=modes,
        prompts=prompts,
        assistant=assistant,
        available_backends=available_backends,
    )


def _optional_int(value: object) -> int | None:
    return None if value is None else int(value)
