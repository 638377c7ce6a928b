"""Réconciliation du répertoire des unités avec la configuration.

Le scan est strictement en lecture seule : il ne modifie ni la
configuration, ni systemd, ni les fichiers. L'adoption et la suppression
des unités orphelines sont des actions séparées (voir ``adoption``).
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from rclone_mount_sync.errors import ReconciliationError
from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.models import Entry, MountEntry, SyncEntry, UnitKind
from rclone_mount_sync.systemd.naming import UnitNamer

# Une clé générée contient au moins un chiffre ; un nom d'affichage
# assaini (« photos », « my-drive ») n'en contient généralement pas.
_GENERATED_KEY_RE = re.compile(r"^[0-9a-z]*[0-9][0-9a-z]*$")


def looks_like_generated_id(key: str) -> bool:
    """True si la clé d'une unité peut provenir d'un identifiant généré."""
    return bool(_GENERATED_KEY_RE.match(key))


@dataclass
class OrphanedUnit:
    """Unité présente sur disque sans entrée de configuration.

    Seul ``imported`` est modifiable par l'appelant, après une adoption
    réussie.

    Attributes:
        name: Nom du fichier unit (ex: "mount-def999.service").
        kind: Type d'unité.
        key: Clé extraite du nom (identifiant ou nom assaini).
        is_legacy: True si la clé ne peut pas être un identifiant généré.
        path: Chemin complet du fichier.
        imported: True une fois l'unité adoptée.
    """

    name: str
    kind: UnitKind
    key: str
    is_legacy: bool
    path: Path
    imported: bool = False

    @property
    def timer_path(self) -> Path:
        """Chemin du timer associé (peut ne pas exister)."""
        return self.path.with_suffix(".timer")


@dataclass(frozen=True)
class MatchedUnit:
    """Unité rattachée à une entrée de configuration.

    Attributes:
        name: Nom du fichier unit.
        kind: Type d'unité.
        entry_id: Identifiant de l'entrée correspondante.
        is_legacy: True si rattachée via l'ancien schéma de nommage.
        path: Chemin complet du fichier.
    """

    name: str
    kind: UnitKind
    entry_id: str
    is_legacy: bool
    path: Path


@dataclass(frozen=True)
class MissingUnit:
    """Entrée de configuration sans fichier unit (état dégradé)."""

    kind: UnitKind
    entry_id: str
    entry_name: str
    expected_unit: str


@dataclass
class ReconciliationResult:
    """Résultat d'un scan, recalculé à chaque passage."""

    orphans: list[OrphanedUnit] = field(default_factory=list)
    matched: list[MatchedUnit] = field(default_factory=list)
    missing: list[MissingUnit] = field(default_factory=list)
    errors: list[ReconciliationError] = field(default_factory=list)

    @property
    def legacy_units(self) -> list[MatchedUnit]:
        """Unités rattachées via l'ancien schéma, à migrer."""
        return [m for m in self.matched if m.is_legacy]

    @property
    def is_clean(self) -> bool:
        """True si aucune dérive ni erreur n'a été détectée."""
        return not (
            self.orphans or self.missing or self.errors
            or self.legacy_units
        )


class Reconciler:
    """Compare le répertoire des unités aux entrées configurées.

    Attributes:
        namer: Calcul et analyse des noms d'unités.
        logger: Logger optionnel pour tracer les anomalies.
    """

    def __init__(
        self,
        namer: UnitNamer | None = None,
        logger: Logger | None = None
    ) -> None:
        self.namer = namer or UnitNamer()
        self.logger = logger

    def reconcile(
        self,
        unit_dir: str | Path,
        mounts: Sequence[MountEntry],
        sync_jobs: Sequence[SyncEntry]
    ) -> ReconciliationResult:
        """
        Classe les fichiers unit gérés du répertoire.

        Args:
            unit_dir: Répertoire des unités utilisateur
            mounts: Points de montage configurés
            sync_jobs: Tâches de synchronisation configurées

        Returns:
            Orphelins, unités rattachées, unités manquantes et erreurs
            non fatales. Un répertoire absent ne contient aucune unité:
            toutes les entrées y sont manquantes.
        """
        unit_dir = Path(unit_dir)
        result = ReconciliationResult()
        entries: list[Entry] = [*mounts, *sync_jobs]

        try:
            filenames = sorted(os.listdir(unit_dir))
        except FileNotFoundError:
            filenames = []
        except OSError as e:
            self._collect(result, ReconciliationError(
                f"Répertoire illisible {unit_dir}: {e}", path=str(unit_dir)
            ))
            return result

        present: set[str] = set()
        for filename in filenames:
            parsed = self.namer.parse(filename)
            if parsed is None or parsed.suffix != ".service":
                continue
            path = unit_dir / filename
            if path.is_dir():
                continue
            if not os.access(path, os.R_OK):
                self._collect(result, ReconciliationError(
                    f"Fichier unit illisible: {path}", path=str(path)
                ))
                continue

            present.add(parsed.base_name)
            match = self.namer.resolve(parsed, entries)
            if match is None:
                result.orphans.append(OrphanedUnit(
                    name=filename,
                    kind=parsed.kind,
                    key=parsed.key,
                    is_legacy=not looks_like_generated_id(parsed.key),
                    path=path,
                ))
                continue
            entry, strategy = match
            result.matched.append(MatchedUnit(
                name=filename,
                kind=parsed.kind,
                entry_id=entry.id,
                is_legacy=strategy.is_legacy,
                path=path,
            ))

        for entry in entries:
            names = [base for base, _ in self.namer.candidates(entry)]
            if not any(base in present for base in names):
                result.missing.append(MissingUnit(
                    kind=entry.kind,
                    entry_id=entry.id,
                    entry_name=entry.name,
                    expected_unit=self.namer.service_unit(
                        entry.id, entry.kind
                    ),
                ))

        if self.logger and (result.orphans or result.missing):
            self.logger.log_warning(
                f"Réconciliation: {len(result.orphans)} unité(s) "
                f"orpheline(s), {len(result.missing)} unité(s) manquante(s)."
            )
        return result

    def _collect(
        self, result: ReconciliationResult, error: ReconciliationError
    ) -> None:
        if self.logger:
            self.logger.log_warning(str(error))
        result.errors.append(error)
