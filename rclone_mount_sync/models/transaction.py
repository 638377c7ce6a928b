"""Types d'opérations et snapshots des transactions."""

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Sequence

from rclone_mount_sync.models.entries import Entry, UnitKind


class OperationKind(StrEnum):
    """Opération appliquée à une entrée."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class TransactionStep(StrEnum):
    """Étapes d'une transaction, dans l'ordre d'exécution."""

    PREPARE = "prepare"
    MUTATE_CONFIG = "mutate-config"
    GENERATE_UNITS = "generate-units"
    RELOAD = "reload"
    ENABLE = "enable"
    START = "start"
    RUN_NOW = "run-now"
    COMMIT = "commit"
    ROLLBACK = "rollback"


@dataclass(frozen=True)
class TransactionSnapshot:
    """État de la liste d'entrées avant une mutation.

    La liste est copiée en profondeur : aucune mutation ultérieure de
    la configuration ne peut l'atteindre.

    Attributes:
        kind: Type d'entrée concerné.
        operation: Opération en cours.
        entry_id: Identifiant de l'entrée visée.
        entry_name: Nom de l'entrée visée.
        entries: Copie de la liste complète des entrées de ce type.
        taken_at: Date de la prise du snapshot.
    """

    kind: UnitKind
    operation: OperationKind
    entry_id: str
    entry_name: str
    entries: tuple[Entry, ...]
    taken_at: datetime = field(default_factory=datetime.now, compare=False)

    @classmethod
    def capture(
        cls,
        kind: str,
        operation: str,
        entry_id: str,
        entry_name: str,
        entries: Sequence[Entry]
    ) -> "TransactionSnapshot":
        """Construit un snapshot à partir de la liste courante."""
        return cls(
            kind=UnitKind(kind),
            operation=OperationKind(operation),
            entry_id=entry_id,
            entry_name=entry_name,
            entries=tuple(copy.deepcopy(list(entries))),
        )

    def restored_entries(self) -> list[Entry]:
        """Nouvelle liste, copie indépendante du snapshot."""
        return copy.deepcopy(list(self.entries))
