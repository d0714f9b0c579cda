"""Tests for chamber/assistant.py."""

import pytest

from chamber.assistant import (
    EMPTY_ANSWER,
    GREETING,
    AssistantRouter,
    ChatSession,
    KeywordClassifier,
)
from chamber.creative import CreativeGenerationFallback
from chamber.models import (
    ContentPart,
    GenerateImage,
    GenerateVideo,
    GenerationResponse,
    Sender,
)
from chamber.providers.base import ServiceError
from tests.conftest import FakeClient

CONFUSED = "I'm not sure how to help with that."


@pytest.fixture
def make_router(registry, sample_prompts_config, sample_model_config):
    def _make(client: FakeClient) -> AssistantRouter:
        return AssistantRouter(
            client=client,
            registry=registry,
            prompts=sample_prompts_config,
            model=sample_model_config,
            classifier=KeywordClassifier(["sorry", "don't understand", "not sure how"]),
        )
    return _make


# --- classifier ---

@pytest.mark.parametrize(
    "text",
    ["Sorry, I can't do that.", "I DON'T UNDERSTAND the question", "Not sure how to answer."],
)
def test_keyword_classifier_matches_case_insensitively(text):
    assert KeywordClassifier(["sorry", "don't understand", "not sure how"]).is_low_confidence(text)


def test_keyword_classifier_ignores_confident_answers():
    assert not KeywordClassifier(["sorry"]).is_low_confidence("Paris is the capital of France.")


# --- general mode ---

async def test_general_mode_enables_search(make_router, sample_prompts_config):
    client = FakeClient([GenerationResponse(text="Paris.")])
    reply = await make_router(client).handle("Capital of France?", None)

    request = client.requests[0]
    assert request.enable_search_tool is True
    assert request.system_instruction == sample_prompts_config.general
    assert request.content_parts == (ContentPart.from_text("Capital of France?"),)
    assert reply.sender == Sender.ASSISTANT
    assert reply.text == "Paris."
    assert reply.actions == ()


async def test_general_mode_confused_answer_offers_two_actions(make_router):
    client = FakeClient([GenerationResponse(text=CONFUSED)])
    reply = await make_router(client).handle("Design a login page", None)

    assert len(reply.actions) == 2
    assert reply.actions == (GenerateImage("Design a login page"), GenerateVideo("Design a login page"))
    assert reply.prompt == "Design a login page"


async def test_general_mode_empty_answer_uses_apology(make_router):
    client = FakeClient([GenerationResponse(text=None)])
    reply = await make_router(client).handle("Hmm?", None)

    assert reply.text == EMPTY_ANSWER
    assert len(reply.actions) == 2


async def test_service_error_becomes_chat_message(make_router):
    client = FakeClient([ServiceError("test_model", "quota exceeded")])
    reply = await make_router(client).handle("Hello", None)

    assert reply.text.startswith("An error occurred:")
    assert "quota exceeded" in reply.text
    assert reply.actions == ()


# --- analyst mode ---

async def test_analyst_mode_disables_search_and_includes_context(make_router, sample_deliberation, sample_prompts_config):
    client = FakeClient([GenerationResponse(text="He said costs pass to visitors.")])
    await make_router(client).handle("What did the economist say?", sample_deliberation)

    request = client.requests[0]
    assert request.enable_search_tool is False
    assert request.system_instruction == sample_prompts_config.analyst
    content = request.content_parts[0].text
    assert sample_deliberation.title in content
    for minute in sample_deliberation.minutes:
        assert minute.text in content
    assert "QUESTION: What did the economist say?" in content


async def test_analyst_mode_never_offers_actions(make_router, sample_deliberation):
    client = FakeClient([GenerationResponse(text=CONFUSED)])
    reply = await make_router(client).handle("What did the economist say?", sample_deliberation)

    assert reply.text == CONFUSED
    assert reply.actions == ()


# --- chat session ---

@pytest.fixture
def make_session(make_router, sample_prompts_config, sample_model_config):
    def _make(client: FakeClient) -> ChatSession:
        fallback = CreativeGenerationFallback(client, sample_prompts_config, sample_model_config)
        return ChatSession(make_router(client), fallback)
    return _make


async def test_session_starts_with_greeting(make_session):
    session = make_session(FakeClient())
    assert session.messages[0].text == GREETING
    assert session.active is None


async def test_switching_active_deliberation_keeps_history(make_session, sample_deliberation):
    client = FakeClient([GenerationResponse(text="Hi!"), GenerationResponse(text="A transition year.")])
    session = make_session(client)

    await session.send("Hello")
    notice = session.set_active(sample_deliberation)
    await session.send("What was decided?")

    texts = [m.text for m in session.messages]
    assert texts[:3] == [GREETING, "Hello", "Hi!"]
    assert notice.sender == Sender.SYSTEM
    assert "Council Analyst mode" in notice.text
    assert sample_deliberation.title in notice.text
    assert client.requests[0].enable_search_tool is True
    assert client.requests[1].enable_search_tool is False


async def test_set_active_none_announces_general_mode(make_session):
    session = make_session(FakeClient())
    notice = session.set_active(None)
    assert "General Assistant mode" in notice.text


async def test_queued_fallback_actions_run_in_order(make_session):
    client = FakeClient(
        [
            GenerationResponse(text=CONFUSED),
            GenerationResponse(binary_parts=(ContentPart.from_bytes(b"img", "image/png"),)),
            GenerationResponse(text="A short ad about calm mornings."),
        ]
    )
    session = make_session(client)
    reply = await session.send("A meditation app")

    for action in reply.actions:
        session.request(action)
    results = await session.process_pending()

    assert len(results) == 2
    assert results[0].image.binary_data == b"img"
    assert "calm mornings" in results[1].text
    assert session.messages[-2:] == tuple(results)
    assert "A meditation app" in client.requests[1].content_parts[0].text
    assert client.requests[1].image_output is True


async def test_failed_fallback_does_not_break_session(make_session):
    client = FakeClient(
        [
            GenerationResponse(text=CONFUSED),
            ServiceError("test_model", "image model unavailable"),
            GenerationResponse(text="Still here."),
        ]
    )
    session = make_session(client)
    reply = await session.send("A meditation app")
    session.request(reply.actions[0])

    results = await session.process_pending()
    follow_up = await session.send("Are you there?")

    assert results[0].text.startswith("Sorry, I couldn't generate the creative content.")
    assert follow_up.text == "Still here."
