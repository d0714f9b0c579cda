"""Inbox proposals: frontmatter parsing, mode resolution, and outcome archiving.

A proposal is a markdown file whose body is the proposal text. Optional
YAML frontmatter may set ``mode`` (full, single or debate). After a run
the file is moved to the archive with the outcome written back into its
frontmatter, so the archive can be traced to the stored deliberation.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

import frontmatter
import yaml

from chamber.models import Deliberation, DeliberationMode

logger = logging.getLogger(__name__)


class InboxError(ValueError):
    """Raised when a proposal file cannot be turned into a deliberation."""


@dataclass(frozen=True)
class InboxProposal:
    path: Path
    prompt: str
    mode: DeliberationMode


def pending_proposals(inbox_dir: Path) -> list[Path]:
    """Return the .md files waiting in inbox_dir, oldest first. Creates the folder."""
    inbox_dir.mkdir(parents=True, exist_ok=True)
    return sorted(inbox_dir.glob("*.md"), key=lambda p: p.stat().st_mtime)


def parse_proposal(
    file_path: Path,
    default_mode: DeliberationMode,
    mode_override: DeliberationMode | None = None,
) -> InboxProposal:
    """Read one proposal file.

    Mode precedence: ``mode_override`` (the CLI flag), then the ``mode``
    frontmatter key, then ``default_mode``.

    Raises:
        InboxError: If the body is empty or the frontmatter mode is unknown.
    """
    post = frontmatter.load(str(file_path))
    prompt = post.content.strip()
    if not prompt:
        raise InboxError(f"{file_path.name}: proposal body is empty")

    mode = mode_override
    if mode is None and "mode" in post.metadata:
        raw = str(post.metadata["mode"]).strip().lower()
        try:
            mode = DeliberationMode(raw)
        except ValueError:
            choices = ", ".join(m.value for m in DeliberationMode)
            raise InboxError(f"{file_path.name}: unknown mode '{raw}', choose from {choices}") from None

    return InboxProposal(path=file_path, prompt=prompt, mode=mode or default_mode)


def outcome(deliberation: Deliberation | None) -> str:
    """Short status for a processed proposal: decided, incomplete or failed."""
    if deliberation is None:
        return "failed"
    return "decided" if deliberation.final_decision is not None else "incomplete"


def archive_proposal(file_path: Path, archive_dir: Path, deliberation: Deliberation | None = None) -> Path:
    """Move a processed proposal into archive_dir and stamp its outcome.

    The archived copy gets ``status``, plus ``deliberation_id`` and ``mode``
    when a deliberation was recorded. Anything short of a decision is
    prefixed ``FAILED_`` so it stands out in the folder.
    """
    archive_dir.mkdir(parents=True, exist_ok=True)
    status = outcome(deliberation)

    text = file_path.read_text(encoding="utf-8")
    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError:
        logger.warning("%s: unreadable frontmatter, archived unchanged", file_path.name)
    else:
        post["status"] = status
        if deliberation is not None:
            post["deliberation_id"] = deliberation.id
            post["mode"] = deliberation.mode.value
        text = frontmatter.dumps(post) + "\n"

    timestamp = datetime.now().strftime("%Y-%m-%dT%H%M")
    prefix = "" if status == "decided" else "FAILED_"
    dest = archive_dir / f"{prefix}{timestamp}_{file_path.name}"
    dest.write_text(text, encoding="utf-8")
    file_path.unlink()

    logger.info("Archived %s as %s (%s)", file_path.name, dest.name, status)
    return dest
