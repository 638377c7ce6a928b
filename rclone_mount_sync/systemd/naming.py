"""Nommage déterministe des unités systemd.

Les unités actuelles sont nommées d'après l'identifiant de l'entrée
(``mount-<id>.service``). Les versions précédentes utilisaient le nom
d'affichage assaini ; les deux schémas sont essayés dans l'ordre pour
retrouver l'entrée d'une unité existante.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Iterator, Sequence

from rclone_mount_sync.models import Entry, UnitKind

_INVALID_CHARS_RE = re.compile(r"[^a-z0-9_-]")
_DASHES_RE = re.compile(r"-{2,}")


def sanitize_name(value: str) -> str:
    """Transforme un texte libre en identifiant utilisable par systemd.

    Minuscules, tout caractère hors ``[a-z0-9_-]`` devient ``-``, les
    tirets consécutifs sont fusionnés et ceux des extrémités retirés.

    Example:
        >>> sanitize_name("My Photos (2024)")
        'my-photos-2024'
    """
    name = _INVALID_CHARS_RE.sub("-", value.lower())
    name = _DASHES_RE.sub("-", name)
    return name.strip("-")


@dataclass(frozen=True)
class ParsedUnitName:
    """Nom de fichier unit décomposé.

    Attributes:
        kind: Type d'unité (mount, sync).
        key: Partie variable (identifiant ou nom assaini).
        suffix: Extension (".service" ou ".timer").
    """

    kind: UnitKind
    key: str
    suffix: str

    @property
    def base_name(self) -> str:
        """Nom de l'unité sans extension."""
        return f"{self.kind}-{self.key}"


class NamingStrategy(ABC):
    """Schéma de nommage reliant une entrée à sa clé d'unité."""

    is_legacy: bool = False

    @abstractmethod
    def key(self, entry: Entry) -> str:
        """Retourne la clé assainie de l'entrée pour ce schéma."""
        pass

    def matches(self, entry: Entry, key: str) -> bool:
        """True si la clé d'unité désigne cette entrée."""
        own_key = self.key(entry)
        return bool(own_key) and own_key == key


class IdNamingStrategy(NamingStrategy):
    """Schéma actuel : clé dérivée de l'identifiant stable."""

    def key(self, entry: Entry) -> str:
        return sanitize_name(entry.id)


class LegacyNameNamingStrategy(NamingStrategy):
    """Ancien schéma : clé dérivée du nom d'affichage."""

    is_legacy = True

    def key(self, entry: Entry) -> str:
        return sanitize_name(entry.name)


DEFAULT_STRATEGIES: tuple[NamingStrategy, ...] = (
    IdNamingStrategy(),
    LegacyNameNamingStrategy(),
)


class UnitNamer:
    """Calcule et analyse les noms d'unités des entrées.

    Les noms sont toujours recalculés : un renommage change la clé
    du schéma historique mais jamais celle du schéma actuel.

    Attributes:
        strategies: Schémas essayés dans l'ordre (premier trouvé).
    """

    def __init__(
        self, strategies: Sequence[NamingStrategy] = DEFAULT_STRATEGIES
    ) -> None:
        self.strategies = tuple(strategies)

    @staticmethod
    def name(identifier: str, kind: str) -> str:
        """Nom d'unité sans extension : ``{kind}-{identifiant assaini}``."""
        return f"{kind}-{sanitize_name(identifier)}"

    def service_unit(self, identifier: str, kind: str) -> str:
        """Nom du fichier .service d'une entrée."""
        return self.name(identifier, kind) + ".service"

    def timer_unit(self, identifier: str, kind: str) -> str:
        """Nom du fichier .timer d'une entrée."""
        return self.name(identifier, kind) + ".timer"

    @staticmethod
    def parse(filename: str) -> ParsedUnitName | None:
        """Décompose un nom de fichier unit géré.

        Args:
            filename: Nom de fichier (ex: "sync-ab12cd34.timer").

        Returns:
            Le nom décomposé, ou None si le fichier n'est pas géré.
        """
        for suffix in (".service", ".timer"):
            if filename.endswith(suffix):
                stem = filename[: -len(suffix)]
                break
        else:
            return None
        for kind in UnitKind:
            prefix = f"{kind}-"
            if stem.startswith(prefix) and len(stem) > len(prefix):
                return ParsedUnitName(kind, stem[len(prefix):], suffix)
        return None

    def resolve(
        self, parsed: ParsedUnitName, entries: Iterable[Entry]
    ) -> tuple[Entry, NamingStrategy] | None:
        """Retrouve l'entrée correspondant à une unité.

        Chaque schéma est essayé sur toutes les entrées avant de
        passer au suivant ; le schéma actuel est donc prioritaire.

        Returns:
            Couple (entrée, schéma) ou None si aucune correspondance.
        """
        candidates = [e for e in entries if e.kind == parsed.kind]
        for strategy in self.strategies:
            for entry in candidates:
                if strategy.matches(entry, parsed.key):
                    return entry, strategy
        return None

    def candidates(
        self, entry: Entry
    ) -> Iterator[tuple[str, NamingStrategy]]:
        """Noms d'unités possibles d'une entrée, schéma actuel d'abord.

        Yields:
            Couples (nom sans extension, schéma), sans doublon.
        """
        seen: set[str] = set()
        for strategy in self.strategies:
            key = strategy.key(entry)
            if not key:
                continue
            base = f"{entry.kind}-{key}"
            if base not in seen:
                seen.add(base)
                yield base, strategy
