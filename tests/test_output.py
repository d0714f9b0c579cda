"""Tests for chamber/output.py."""

from dataclasses import replace
from pathlib import Path

from chamber.models import ChatMessage, DeliberationMode, GenerateImage, GenerateVideo, Minute, Sender
from chamber.output import _slug, console, print_chat_message, print_deliberation, save_to_file


def test_slug_basic():
    assert _slug("Should we ban plastics?") == "should-we-ban-plastics"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("Tram vs. Bus (2026)")
    assert "." not in result
    assert "(" not in result


def test_save_to_file_creates_file(tmp_path: Path, sample_deliberation, registry):
    saved = save_to_file(sample_deliberation, registry, tmp_path / "nested" / "output")
    assert saved.exists()
    assert saved.suffix == ".md"
    assert "ban-single-use-plastics" in saved.name


def test_save_to_file_content(tmp_path: Path, sample_deliberation, registry):
    content = save_to_file(sample_deliberation, registry, tmp_path).read_text(encoding="utf-8")
    assert "# Council Deliberation: Ban single-use plastics in city parks" in content
    assert "**Mode:** debate" in content
    assert "## Round 1" in content
    assert "### Dr. Lena Petrova (Ethicist)" in content
    assert "## Final Decision" in content
    assert "Adopt the ban with a one-year transition." in content


def test_save_to_file_partial_run(tmp_path: Path, sample_deliberation, registry):
    partial = replace(
        sample_deliberation,
        final_decision=None,
        minutes=(*sample_deliberation.minutes, Minute("system", 2, "[gemini] quota", is_error=True)),
    )
    content = save_to_file(partial, registry, tmp_path, slug_override="inbox-file").read_text(encoding="utf-8")
    assert "### System Error" in content
    assert "ended before a decision" in content


def test_save_to_file_slug_override(tmp_path: Path, sample_deliberation, registry):
    saved = save_to_file(sample_deliberation, registry, tmp_path, slug_override="from-inbox")
    assert saved.name.endswith("_from-inbox.md")


def test_print_deliberation_renders_minutes(sample_deliberation, registry):
    with console.capture() as capture:
        print_deliberation(sample_deliberation, registry)
    text = capture.get()
    assert "Marcus Cole" in text
    assert "Final Decision" in text


def test_print_chat_message_lists_actions():
    message = ChatMessage(
        sender=Sender.ASSISTANT,
        text="Sorry, not sure how.",
        prompt="a login page",
        actions=(GenerateImage("a login page"), GenerateVideo("a login page")),
    )
    with console.capture() as capture:
        print_chat_message(message)
    text = capture.get()
    assert "/wireframe" in text
    assert "/video" in text


def test_save_to_file_members_in_speaking_order(tmp_path: Path, sample_deliberation, registry):
    debate = save_to_file(sample_deliberation, registry, tmp_path / "debate").read_text(encoding="utf-8")
    assert "**Members:** Dr. Lena Petrova, Marcus Cole" in debate

    full = replace(sample_deliberation, mode=DeliberationMode.FULL, minutes=())
    content = save_to_file(full, registry, tmp_path / "full").read_text(encoding="utf-8")
    assert (
        "**Members:** Dr. Anya Sharma, Ben Carter, Dr. Lena Petrova, Marcus Cole, Dr. Kenji Tanaka" in content
    )
