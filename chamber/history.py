"""JSON-backed list of deliberation records, keyed by id."""

import base64
import json
import logging
from datetime import datetime
from pathlib import Path

from chamber.models import Attachment, AttachmentKind, Deliberation, DeliberationMode, Minute

logger = logging.getLogger(__name__)


def _attachment_to_dict(att: Attachment) -> dict:
    return {
        "name": att.name,
        "kind": att.kind.value,
        "data": base64.b64encode(att.binary_data).decode("ascii") if att.binary_data is not None else None,
        "mime_type": att.mime_type,
    }


def _attachment_from_dict(raw: dict) -> Attachment:
    data = raw.get("data")
    return Attachment(
        name=raw["name"],
        kind=AttachmentKind(raw["kind"]),
        binary_data=base64.b64decode(data) if data is not None else None,
        mime_type=raw.get("mime_type"),
    )


def deliberation_to_dict(d: Deliberation) -> dict:
    return {
        "id": d.id,
        "title": d.title,
        "prompt": d.prompt,
        "mode": d.mode.value,
        "created_at": d.created_at.isoformat(),
        "attachments": [_attachment_to_dict(a) for a in d.attachments],
        "minutes": [
            {"persona_id": m.persona_id, "round": m.round, "text": m.text, "is_error": m.is_error}
            for m in d.minutes
        ],
        "final_decision": d.final_decision,
        "synthesis_error": d.synthesis_error,
    }


def deliberation_from_dict(raw: dict) -> Deliberation:
    return Deliberation(
        id=raw["id"],
        title=raw["title"],
        prompt=raw["prompt"],
        mode=DeliberationMode(raw["mode"]),
        created_at=datetime.fromisoformat(raw["created_at"]),
        attachments=tuple(_attachment_from_dict(a) for a in raw.get("attachments", [])),
        minutes=tuple(
            Minute(
                persona_id=m["persona_id"],
                round=int(m["round"]),
                text=m["text"],
                is_error=bool(m.get("is_error", False)),
            )
            for m in raw.get("minutes", [])
        ),
        final_decision=raw.get("final_decision"),
        synthesis_error=raw.get("synthesis_error"),
    )


class HistoryStore:
    """Ordered store of completed and partial deliberations.

    Records are held in memory; ``load`` and ``save`` round-trip them
    through a JSON file.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._records: list[Deliberation] = []

    @property
    def path(self) -> Path:
        return self._path

    def get(self, deliberation_id: str) -> Deliberation | None:
        return next((d for d in self._records if d.id == deliberation_id), None)

    def recent(self) -> list[Deliberation]:
        """Return all records, newest first."""
        return sorted(self._records, key=lambda d: d.created_at, reverse=True)

    def upsert(self, deliberation: Deliberation) -> None:
        """Replace the record sharing this id, otherwise insert it."""
        self._records = [d for d in self._records if d.id != deliberation.id]
        self._records.append(deliberation)

    def load(self) -> list[Deliberation]:
        """Read records from disk. A missing file yields an empty store."""
        if not self._path.exists():
            self._records = []
            return []
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        self._records = [deliberation_from_dict(item) for item in raw]
        logger.debug("Loaded %d deliberations from %s", len(self._records), self._path)
        return self.recent()

    def save(self) -> Path:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [deliberation_to_dict(d) for d in self._records]
        self._path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
        logger.info("History saved to: %s (%d records)", self._path, len(self._records))
        return self._path
