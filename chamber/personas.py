"""Persona roster and the mode policy that picks participants and round counts."""

from collections.abc import Iterator

from config.config_loader import AppConfig, ModesConfig, PersonaConfig
from chamber.models import DeliberationMode, Persona

TOTAL_ROUNDS = 3

_ROUNDS_BY_MODE: dict[DeliberationMode, int] = {
    DeliberationMode.FULL: TOTAL_ROUNDS,
    DeliberationMode.SINGLE_PERSONA: 1,
    DeliberationMode.DEBATE: TOTAL_ROUNDS,
}


class PersonaRegistry:
    """Immutable, ordered roster of personas.

    Built once from config and injected into the orchestrator and the
    assistant router. Registry order is the speaking order within a round.
    """

    def __init__(self, personas: list[Persona], single_persona: str, debate_pair: list[str]) -> None:
        if not personas:
            raise ValueError("Persona registry needs at least one persona")
        ids = [p.id for p in personas]
        if len(set(ids)) != len(ids):
            raise ValueError(f"Duplicate persona ids in registry: {ids}")

        self._personas: tuple[Persona, ...] = tuple(personas)
        self._by_id = {p.id: p for p in self._personas}

        if single_persona not in self._by_id:
            raise ValueError(f"Unknown single-persona id: {single_persona}")
        if len(debate_pair) != 2:
            raise ValueError(f"Debate mode needs exactly two personas, got {len(debate_pair)}")
        unknown = [p for p in debate_pair if p not in self._by_id]
        if unknown:
            raise ValueError(f"Unknown debate persona ids: {', '.join(unknown)}")

        self._members: dict[DeliberationMode, tuple[Persona, ...]] = {
            DeliberationMode.FULL: self._personas,
            DeliberationMode.SINGLE_PERSONA: (self._by_id[single_persona],),
            DeliberationMode.DEBATE: tuple(self._by_id[p] for p in debate_pair),
        }

    @classmethod
    def from_config(cls, personas: list[PersonaConfig], modes: ModesConfig) -> "PersonaRegistry":
        return cls(
            [
                Persona(
                    id=p.id,
                    display_name=p.name,
                    title=p.title,
                    role_instruction=p.instruction,
                    avatar=p.avatar,
                    color=p.color,
                )
                for p in personas
            ],
            single_persona=modes.single_persona,
            debate_pair=list(modes.debate_pair),
        )

    @classmethod
    def from_app_config(cls, config: AppConfig) -> "PersonaRegistry":
        return cls.from_config(config.personas, config.modes)

    def __iter__(self) -> Iterator[Persona]:
        return iter(self._personas)

    def __len__(self) -> int:
        return len(self._personas)

    def get(self, persona_id: str) -> Persona | None:
        return self._by_id.get(persona_id)

    def display_name(self, persona_id: str, default: str = "System") -> str:
        persona = self._by_id.get(persona_id)
        return persona.display_name if persona else default

    def resolve(self, mode: DeliberationMode) -> tuple[tuple[Persona, ...], int]:
        """Return (participants in speaking order, round count) for a mode."""
        return self._members[mode], _ROUNDS_BY_MODE[mode]
