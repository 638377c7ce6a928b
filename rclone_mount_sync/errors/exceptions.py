"""
Exceptions personnalisées de rclone-mount-sync.

Chaque famille d'erreur correspond à une étape du cycle de vie d'une
unité : persistance de la configuration, génération des fichiers unit,
pilotage de systemd, réconciliation et rollback.
"""


class ApplicationError(Exception):
    """Exception de base pour toute l'application."""
    pass


class ConfigurationError(ApplicationError):
    """Configuration invalide ou illisible."""
    pass


class ConfigPersistenceError(ConfigurationError):
    """Échec de l'écriture du fichier de configuration.

    Attributes:
        path: Chemin du fichier de configuration concerné.
    """

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class ValidationError(ApplicationError):
    """Donnée refusée avant toute mutation."""
    pass


class DuplicateEntryError(ValidationError):
    """Une entrée de même nom existe déjà parmi ses voisines."""
    pass


class EntryNotFoundError(ApplicationError):
    """Aucune entrée ne correspond à l'identifiant demandé."""
    pass


class UnitGenerationError(ApplicationError):
    """Erreur d'entrée/sortie lors de l'écriture ou suppression d'un unit.

    Attributes:
        unit_name: Nom du fichier unit concerné.
        path: Chemin absolu du fichier unit.
    """

    def __init__(
        self, message: str, unit_name: str = "", path: str = ""
    ) -> None:
        super().__init__(message)
        self.unit_name = unit_name
        self.path = path


class ServiceControlError(ApplicationError):
    """Échec d'une commande systemctl ou journalctl.

    Attributes:
        verb: Verbe exécuté (start, stop, daemon-reload, ...).
        unit_name: Unité visée (vide pour daemon-reload).
        output: Sortie d'erreur de la commande.
    """

    def __init__(
        self,
        message: str,
        verb: str = "",
        unit_name: str = "",
        output: str = ""
    ) -> None:
        super().__init__(message)
        self.verb = verb
        self.unit_name = unit_name
        self.output = output


class ReconciliationError(ApplicationError):
    """Erreur non fatale rencontrée pendant un scan de réconciliation.

    Attributes:
        path: Fichier ou répertoire illisible.
    """

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class RollbackError(ApplicationError):
    """La configuration restaurée n'a pas pu être enregistrée.

    L'échec d'enregistrement est chaîné via ``__cause__``.
    """
    pass


class TransactionError(ApplicationError):
    """Échec d'une opération create/update/delete sur une entrée.

    L'erreur primaire est chaînée via ``__cause__`` et exposée par
    ``cause``. ``config_restored`` indique si la configuration a été
    ramenée à l'état du snapshot.

    Attributes:
        operation: Type d'opération (create, update, delete).
        kind: Type d'entrée (mount, sync).
        entry_id: Identifiant de l'entrée visée.
        step: Étape de la transaction qui a échoué.
        cause: Exception primaire.
        config_restored: True si la configuration a été restaurée.
        cleanup_results: Résultats des étapes de nettoyage systemd.
        rollback_error: Échec du rollback, None si la restauration
            a été enregistrée.
    """

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        kind: str,
        entry_id: str,
        step: str,
        cause: Exception,
        config_restored: bool,
        cleanup_results: list | None = None,
        rollback_error: RollbackError | None = None
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.kind = kind
        self.entry_id = entry_id
        self.step = step
        self.cause = cause
        self.config_restored = config_restored
        self.cleanup_results = cleanup_results or []
        self.rollback_error = rollback_error
