"""Stubbed sign-in: a fixed mock user persisted to a small JSON file."""

import json
import logging
from pathlib import Path

from chamber.models import User

logger = logging.getLogger(__name__)

MOCK_USER = User(name="Alex", avatar_ref="https://api.dicebear.com/8.x/initials/svg?seed=Alex")


class IdentityProvider:
    def __init__(self, path: Path) -> None:
        self._path = path

    def current(self) -> User | None:
        if not self._path.exists():
            return None
        raw = json.loads(self._path.read_text(encoding="utf-8"))
        return User(name=raw["name"], avatar_ref=raw["avatar_ref"])

    def sign_in(self) -> User:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(
            json.dumps({"name": MOCK_USER.name, "avatar_ref": MOCK_USER.avatar_ref}),
            encoding="utf-8",
        )
        logger.info("Signed in as %s", MOCK_USER.name)
        return MOCK_USER

    def sign_out(self) -> None:
        self._path.unlink(missing_ok=True)
        logger.info("Signed out")
