"""Shared pytest fixtures."""

from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    AssistantConfig,
    DefaultsConfig,
    ModelConfig,
    ModesConfig,
    PersonaConfig,
    PromptsConfig,
)
from chamber.history import HistoryStore
from chamber.models import (
    Deliberation,
    DeliberationMode,
    GenerationRequest,
    GenerationResponse,
    Minute,
)
from chamber.personas import PersonaRegistry
from chamber.providers.base import LanguageModelClient


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="test_model",
        sdk="test",
        model="test-model-1",
        api_key_env="TEST_API_KEY",
        timeout_sec=30,
        thinking_budget=32768,
        image_model="test-image-model",
    )


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        proposal='User proposal: "{proposal}"',
        attachments_note="Consider attached documents: {names}.",
        turn="\nYour turn, {name}. Provide your minute for Round {round}.",
        minute_record="Minute from {name} in Round {round}:\n{text}",
        synthesis="\nSynthesize all minutes into a unified final decision.",
        chair="You are the impartial chair.",
        general="You are a helpful AI assistant. Use Google Search if you need up-to-date information.",
        analyst="Use ONLY the provided context to answer the user's question about the deliberation.",
        wireframe="Generate a black and white, low-fidelity, sketchy wireframe based on this concept: {prompt}",
        video="Generate a short, punchy, one-paragraph video concept based on this concept: {prompt}",
    )


@pytest.fixture
def sample_personas() -> list[PersonaConfig]:
    return [
        PersonaConfig("environmentalist", "Dr. Anya Sharma", "Environmentalist", "You are Dr. Anya Sharma."),
        PersonaConfig("technologist", "Ben Carter", "Technologist", "You are Ben Carter."),
        PersonaConfig("ethicist", "Dr. Lena Petrova", "Ethicist", "You are Dr. Lena Petrova."),
        PersonaConfig("economist", "Marcus Cole", "Economist", "You are Marcus Cole."),
        PersonaConfig("public-health", "Dr. Kenji Tanaka", "Public Health", "You are Dr. Kenji Tanaka."),
    ]


@pytest.fixture
def sample_modes() -> ModesConfig:
    return ModesConfig(single_persona="technologist", debate_pair=["ethicist", "economist"])


@pytest.fixture
def registry(sample_personas, sample_modes) -> PersonaRegistry:
    return PersonaRegistry.from_config(sample_personas, sample_modes)


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_model_config: ModelConfig,
    sample_prompts_config: PromptsConfig,
    sample_personas: list[PersonaConfig],
    sample_modes: ModesConfig,
) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            backend="test_model",
            mode="full",
            history_path=tmp_path / "history.json",
            user_path=tmp_path / "user.json",
            output_dir=tmp_path / "output",
            inbox_dir=tmp_path / "inbox",
            archive_dir=tmp_path / "archive",
        ),
        models={"test_model": sample_model_config},
        personas=sample_personas,
        modes=sample_modes,
        prompts=sample_prompts_config,
        assistant=AssistantConfig(),
        available_backends={"test_model"},
    )


@pytest.fixture
def history_store(tmp_path: Path) -> HistoryStore:
    return HistoryStore(tmp_path / "history.json")


@pytest.fixture
def sample_deliberation() -> Deliberation:
    return Deliberation(
        id="delib_abc123",
        title="Ban single-use plastics in...",
        prompt="Ban single-use plastics in city parks",
        mode=DeliberationMode.DEBATE,
        created_at=datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc),
        minutes=(
            Minute("ethicist", 1, "The ban is fair if alternatives are affordable."),
            Minute("economist", 1, "Vendors will pass the cost on to visitors."),
        ),
        final_decision="Adopt the ban with a one-year transition.",
    )


class FakeClient(LanguageModelClient):
    """Test double LanguageModelClient that records every request.

    Responses are served in order from ``responses``; an Exception instance
    in the list is raised instead. When the list runs out, a generic text
    response numbered by call is returned.
    """

    def __init__(self, responses: list[GenerationResponse | Exception] | None = None, name: str = "test_model") -> None:
        self._name = name
        self._responses = list(responses or [])
        self.requests: list[GenerationRequest] = []

    def name(self) -> str:
        return self._name

    def model_string(self) -> str:
        return "test-model-1"

    async def generate(self, request: GenerationRequest) -> GenerationResponse:
        self.requests.append(request)
        if self._responses:
            result = self._responses.pop(0)
            if isinstance(result, Exception):
                raise result
            return result
        return GenerationResponse(text=f"Response {len(self.requests)}")


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def mock_client() -> LanguageModelClient:
    """AsyncMock-backed client for tests that only care about call arguments."""
    client = FakeClient()
    client.generate = AsyncMock(return_value=GenerationResponse(text="Mock response"))  # type: ignore[method-assign]
    return client
