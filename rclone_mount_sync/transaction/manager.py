"""Application transactionnelle des entrées à systemd.

Chaque opération suit la même séquence : snapshot de la liste des
entrées, mutation et enregistrement de la configuration, écriture des
fichiers unit, daemon-reload, activation, démarrage. Un échec après
l'enregistrement déclenche un rollback : la configuration est restaurée
depuis le snapshot puis, sauf pour une suppression, les unités
éventuellement créées sont arrêtées et supprimées.
"""

from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

from rclone_mount_sync.config.store import ConfigStore
from rclone_mount_sync.errors import (
    ApplicationError,
    CleanupSequence,
    CleanupStepResult,
    DuplicateEntryError,
    EntryNotFoundError,
    ErrorHandler,
    LoggerErrorHandler,
    RollbackError,
    TransactionError,
)
from rclone_mount_sync.logging.base import Logger
from rclone_mount_sync.models import (
    Entry,
    MountEntry,
    OperationKind,
    SyncEntry,
    TransactionSnapshot,
    TransactionStep,
    UnitKind,
)
from rclone_mount_sync.systemd.base import ServiceController
from rclone_mount_sync.systemd.generator import UnitGenerator
from rclone_mount_sync.systemd.naming import UnitNamer

Step = tuple[TransactionStep, Callable[[], object]]

# Exceptions qui interrompent une étape et déclenchent le rollback.
STEP_ERRORS = (ApplicationError, OSError, ValueError)


@dataclass(frozen=True)
class RollbackReport:
    """Bilan d'un rollback.

    Attributes:
        config_restored: True si la configuration restaurée a été
            enregistrée.
        cleanup_results: Résultat de chaque étape de nettoyage systemd.
        error: Échec de l'enregistrement de la configuration restaurée.
    """

    config_restored: bool
    cleanup_results: list[CleanupStepResult] = field(default_factory=list)
    error: RollbackError | None = None


class TransactionManager:
    """Crée, modifie et supprime des entrées de façon cohérente.

    Les opérations sont synchrones et doivent être sérialisées par
    l'appelant : le snapshot porte sur toute la liste d'un type.

    Attributes:
        store: Stockage des entrées.
        generator: Générateur des fichiers unit.
        controller: Pilotage de systemd.
        logger: Instance de Logger pour le logging.
        error_handler: Destinataire des erreurs de transaction.
        namer: Calcul des noms d'unités.
    """

    def __init__(
        self,
        store: ConfigStore,
        generator: UnitGenerator,
        controller: ServiceController,
        logger: Logger,
        error_handler: ErrorHandler | None = None,
        namer: UnitNamer | None = None
    ) -> None:
        self.store = store
        self.generator = generator
        self.controller = controller
        self.logger = logger
        self.error_handler = error_handler or LoggerErrorHandler(logger)
        self.namer = namer or generator.namer

    # -- Snapshot et rollback -------------------------------------------------

    def prepare(
        self,
        kind: str,
        entry_id: str,
        entry_name: str,
        operation: str
    ) -> TransactionSnapshot:
        """
        Copie la liste des entrées avant toute mutation.

        Args:
            kind: Type d'entrée (mount, sync)
            entry_id: Identifiant de l'entrée visée
            entry_name: Nom de l'entrée visée
            operation: Opération (create, update, delete)

        Returns:
            Snapshot indépendant de la configuration vivante
        """
        snapshot = TransactionSnapshot.capture(
            kind, operation, entry_id, entry_name, self.store.entries(kind)
        )
        self.logger.log_info(self._step_message(
            snapshot, TransactionStep.PREPARE,
            f"snapshot de {len(snapshot.entries)} entrée(s)",
        ))
        return snapshot

    def rollback(self, snapshot: TransactionSnapshot) -> RollbackReport:
        """
        Restaure la configuration du snapshot et nettoie systemd.

        Ne lève jamais d'exception et peut être appelé plusieurs fois.
        Le nettoyage systemd est omis pour une suppression.

        Args:
            snapshot: Snapshot pris par ``prepare``

        Returns:
            Bilan de la restauration et du nettoyage
        """
        self.logger.log_warning(self._step_message(
            snapshot, TransactionStep.ROLLBACK,
            f"restauration de {len(snapshot.entries)} entrée(s)",
        ))
        self.store.set_entries(snapshot.kind, snapshot.restored_entries())
        error = None
        try:
            self.store.save()
        except ApplicationError as e:
            error = RollbackError(
                f"Impossible d'enregistrer la configuration restaurée: {e}"
            )
            error.__cause__ = e
            self.logger.log_error(str(error))

        if snapshot.operation == OperationKind.DELETE:
            return RollbackReport(error is None, error=error)

        cleanup = self._cleanup_sequence(snapshot.kind, snapshot.entry_id)
        return RollbackReport(error is None, cleanup.execute(), error)

    def _cleanup_sequence(
        self, kind: str, entry_id: str
    ) -> CleanupSequence:
        service = self.namer.service_unit(entry_id, kind)
        sequence = CleanupSequence(self.logger)
        if kind == UnitKind.MOUNT:
            sequence.add_action(
                lambda: self.controller.stop(service), f"arrêt de {service}"
            )
            sequence.add_action(
                lambda: self.controller.disable(service),
                f"désactivation de {service}",
            )
            sequence.add_action(
                lambda: self.generator.remove_unit(service),
                f"suppression de {service}",
            )
        else:
            timer = self.namer.timer_unit(entry_id, kind)
            sequence.add_action(
                lambda: self.controller.stop(service), f"arrêt de {service}"
            )
            sequence.add_action(
                lambda: self.controller.stop_timer(timer),
                f"arrêt de {timer}",
            )
            sequence.add_action(
                lambda: self.controller.disable(service),
                f"désactivation de {service}",
            )
            sequence.add_action(
                lambda: self.controller.disable_timer(timer),
                f"désactivation de {timer}",
            )
            sequence.add_action(
                lambda: self.generator.remove_unit(service),
                f"suppression de {service}",
            )
            sequence.add_action(
                lambda: self.generator.remove_unit(timer),
                f"suppression de {timer}",
            )
        sequence.add_action(self.controller.daemon_reload, "daemon-reload")
        return sequence

    # -- Déroulement commun -----------------------------------------------

    def _mutate(
        self, snapshot: TransactionSnapshot, entries: Sequence[Entry]
    ) -> None:
        """Affecte la nouvelle liste et l'enregistre.

        Un échec d'enregistrement restaure la liste en mémoire sans
        réenregistrer ni toucher à systemd.
        """
        self.store.set_entries(snapshot.kind, entries)
        try:
            self.store.save()
        except ApplicationError as e:
            self.store.set_entries(
                snapshot.kind, snapshot.restored_entries()
            )
            self._report(
                snapshot, TransactionStep.MUTATE_CONFIG, e,
                RollbackReport(config_restored=True),
            )

    def _apply(
        self, snapshot: TransactionSnapshot, steps: Sequence[Step]
    ) -> None:
        """Exécute les étapes ; le premier échec déclenche le rollback."""
        for step, action in steps:
            try:
                action()
            except STEP_ERRORS as e:
                self.logger.log_error(
                    f"Échec de l'étape {step} pour {snapshot.kind} "
                    f"{snapshot.entry_id}: {e}"
                )
                self._report(snapshot, step, e, self.rollback(snapshot))

    def _report(
        self,
        snapshot: TransactionSnapshot,
        step: TransactionStep,
        cause: Exception,
        report: RollbackReport
    ) -> None:
        error = TransactionError(
            f"Échec de {snapshot.operation} {snapshot.kind} "
            f"{snapshot.entry_name!r} à l'étape {step}: {cause}",
            operation=snapshot.operation,
            kind=snapshot.kind,
            entry_id=snapshot.entry_id,
            step=step,
            cause=cause,
            config_restored=report.config_restored,
            cleanup_results=report.cleanup_results,
            rollback_error=report.error,
        )
        self.error_handler.handle(error)
        raise error from cause

    def _commit(self, snapshot: TransactionSnapshot) -> None:
        self.logger.log_info(self._step_message(
            snapshot, TransactionStep.COMMIT,
            f"{snapshot.entry_name} validée",
        ))

    @staticmethod
    def _step_message(
        snapshot: TransactionSnapshot, step: TransactionStep, detail: str
    ) -> str:
        return (
            f"Transaction [{snapshot.operation} {snapshot.kind} "
            f"{snapshot.entry_id}] {step}: {detail}"
        )

    def _existing(self, kind: str, entry_id: str) -> Entry:
        entry = self.store.get(kind, entry_id)
        if entry is None:
            raise EntryNotFoundError(
                f"Aucune entrée {kind} d'identifiant {entry_id!r}"
            )
        return entry

    def _check_new(self, entry: Entry) -> None:
        if self.store.get(entry.kind, entry.id) is not None:
            raise DuplicateEntryError(
                f"L'identifiant {entry.id!r} est déjà utilisé"
            )
        self.store.ensure_unique_name(entry.kind, entry.name)

    def _replace(self, entry: Entry) -> list[Entry]:
        return [
            entry if e.id == entry.id else e
            for e in self.store.entries(entry.kind)
        ]

    def _updated(self, entry: Entry) -> Entry:
        """Vérifie une modification et conserve la date de création."""
        current = self._existing(entry.kind, entry.id)
        self.store.ensure_unique_name(
            entry.kind, entry.name, exclude_id=entry.id
        )
        return replace(entry, created_at=current.created_at).touched()

    # -- Points de montage ----------------------------------------------------

    def create_mount(self, entry: MountEntry) -> MountEntry:
        """
        Ajoute un point de montage et installe son service.

        Args:
            entry: Nouveau point de montage

        Returns:
            L'entrée enregistrée

        Raises:
            DuplicateEntryError: Nom ou identifiant déjà utilisé.
            TransactionError: Si une étape échoue (rollback effectué).
        """
        self._check_new(entry)
        snapshot = self.prepare(
            UnitKind.MOUNT, entry.id, entry.name, OperationKind.CREATE
        )
        self._mutate(snapshot, [*self.store.mounts, entry])

        service = self.namer.service_unit(entry.id, UnitKind.MOUNT)
        steps: list[Step] = [
            (TransactionStep.GENERATE_UNITS,
             lambda: self.generator.write_mount_unit(entry)),
            (TransactionStep.RELOAD, self.controller.daemon_reload),
        ]
        if entry.enabled:
            steps.append((
                TransactionStep.ENABLE,
                lambda: self.controller.enable(service),
            ))
        if entry.auto_start:
            steps.append((
                TransactionStep.START,
                lambda: self.controller.start(service),
            ))
        self._apply(snapshot, steps)
        self._commit(snapshot)
        return entry

    def update_mount(self, entry: MountEntry) -> MountEntry:
        """
        Modifie un point de montage et réécrit son service.

        Le service est activé ou désactivé selon ``enabled`` et
        redémarré si ``auto_start``. Les unités de l'ancien schéma de
        nommage sont supprimées après validation.

        Args:
            entry: Version modifiée (même identifiant)

        Returns:
            L'entrée enregistrée

        Raises:
            EntryNotFoundError: Identifiant inconnu.
            DuplicateEntryError: Nom déjà porté par une autre entrée.
            TransactionError: Si une étape échoue (rollback effectué).
        """
        entry = self._updated(entry)
        snapshot = self.prepare(
            UnitKind.MOUNT, entry.id, entry.name, OperationKind.UPDATE
        )
        previous = self.store.get(UnitKind.MOUNT, entry.id)
        self._mutate(snapshot, self._replace(entry))

        service = self.namer.service_unit(entry.id, UnitKind.MOUNT)
        if entry.enabled:
            toggle = self.controller.enable
        else:
            toggle = self.controller.disable
        steps: list[Step] = [
            (TransactionStep.GENERATE_UNITS,
             lambda: self.generator.write_mount_unit(entry)),
            (TransactionStep.RELOAD, self.controller.daemon_reload),
            (TransactionStep.ENABLE, lambda: toggle(service)),
        ]
        if entry.auto_start:
            steps.append((
                TransactionStep.START,
                lambda: self.controller.restart(service),
            ))
        self._apply(snapshot, steps)
        self._commit(snapshot)
        self._migrate_legacy_units(previous, entry)
        return entry

    def delete_mount(self, entry_id: str) -> MountEntry:
        """
        Supprime un point de montage et son service.

        L'arrêt et la désactivation sont tentés avant la suppression des
        fichiers, sans que leur échec n'interrompe l'opération. Si une
        suppression de fichier ou le daemon-reload échoue ensuite,
        l'entrée est réinsérée dans la configuration mais ses unités
        restent arrêtées et désactivées : il faut la réappliquer (par
        exemple via une modification) pour les réactiver.

        Args:
            entry_id: Identifiant du point de montage

        Returns:
            L'entrée supprimée

        Raises:
            EntryNotFoundError: Identifiant inconnu.
            TransactionError: Si une étape échoue (entrée réinsérée).
        """
        return self._delete(UnitKind.MOUNT, entry_id)

    # -- Synchronisations -----------------------------------------------------

    def create_sync_job(
        self, entry: SyncEntry, run_now: bool = False
    ) -> SyncEntry:
        """
        Ajoute une synchronisation et installe son service et son timer.

        Args:
            entry: Nouvelle synchronisation
            run_now: Déclencher une exécution immédiate

        Returns:
            L'entrée enregistrée

        Raises:
            DuplicateEntryError: Nom ou identifiant déjà utilisé.
            TransactionError: Si une étape échoue (rollback effectué).
        """
        self._check_new(entry)
        snapshot = self.prepare(
            UnitKind.SYNC, entry.id, entry.name, OperationKind.CREATE
        )
        self._mutate(snapshot, [*self.store.sync_jobs, entry])
        self._apply(snapshot, self._sync_steps(entry, run_now))
        self._commit(snapshot)
        return entry

    def update_sync_job(
        self, entry: SyncEntry, run_now: bool = False
    ) -> SyncEntry:
        """
        Modifie une synchronisation et réécrit ses unités.

        Args:
            entry: Version modifiée (même identifiant)
            run_now: Déclencher une exécution immédiate

        Returns:
            L'entrée enregistrée

        Raises:
            EntryNotFoundError: Identifiant inconnu.
            DuplicateEntryError: Nom déjà porté par une autre entrée.
            TransactionError: Si une étape échoue (rollback effectué).
        """
        entry = self._updated(entry)
        snapshot = self.prepare(
            UnitKind.SYNC, entry.id, entry.name, OperationKind.UPDATE
        )
        previous = self.store.get(UnitKind.SYNC, entry.id)
        self._mutate(snapshot, self._replace(entry))
        self._apply(
            snapshot, self._sync_steps(entry, run_now, updating=True)
        )
        self._commit(snapshot)
        self._migrate_legacy_units(previous, entry)
        return entry

    def delete_sync_job(self, entry_id: str) -> SyncEntry:
        """
        Supprime une synchronisation, son service et son timer.

        L'arrêt et la désactivation sont tentés avant la suppression des
        fichiers, sans que leur échec n'interrompe l'opération. Si une
        suppression de fichier ou le daemon-reload échoue ensuite,
        l'entrée est réinsérée dans la configuration mais ses unités
        restent arrêtées et désactivées : il faut la réappliquer (par
        exemple via une modification) pour les réactiver.

        Args:
            entry_id: Identifiant de la synchronisation

        Returns:
            L'entrée supprimée

        Raises:
            EntryNotFoundError: Identifiant inconnu.
            TransactionError: Si une étape échoue (entrée réinsérée).
        """
        return self._delete(UnitKind.SYNC, entry_id)

    def _sync_steps(
        self, entry: SyncEntry, run_now: bool, updating: bool = False
    ) -> list[Step]:
        service = self.namer.service_unit(entry.id, UnitKind.SYNC)
        timer = self.namer.timer_unit(entry.id, UnitKind.SYNC)
        steps: list[Step] = [
            (TransactionStep.GENERATE_UNITS,
             lambda: self.generator.write_sync_units(entry)),
            (TransactionStep.RELOAD, self.controller.daemon_reload),
        ]
        if entry.schedule.needs_timer and entry.enabled:
            steps.append((
                TransactionStep.ENABLE,
                lambda: self.controller.enable_timer(timer),
            ))
            steps.append((
                TransactionStep.START,
                lambda: self.controller.start_timer(timer),
            ))
        elif updating:
            steps.append((
                TransactionStep.ENABLE,
                lambda: self._release_timer(timer),
            ))
        if run_now:
            steps.append((
                TransactionStep.RUN_NOW,
                lambda: self.controller.run_now(service),
            ))
        return steps

    def _release_timer(self, timer: str) -> None:
        """Arrête et désactive un timer qui n'est plus souhaité."""
        sequence = CleanupSequence(self.logger)
        sequence.add_action(
            lambda: self.controller.stop_timer(timer), f"arrêt de {timer}"
        )
        sequence.add_action(
            lambda: self.controller.disable_timer(timer),
            f"désactivation de {timer}",
        )
        sequence.execute()

    # -- Suppression et migration ---------------------------------------------

    def _delete(self, kind: UnitKind, entry_id: str) -> Entry:
        entry = self._existing(kind, entry_id)
        snapshot = self.prepare(
            kind, entry.id, entry.name, OperationKind.DELETE
        )
        self._mutate(
            snapshot,
            [e for e in self.store.entries(kind) if e.id != entry_id],
        )

        current = self._current_units(entry)
        owners = [*self.store.entries(kind), entry]
        unit_names = [
            u for u in self._unit_files(entry)
            if u in current or (
                (self.generator.unit_dir / u).exists()
                and self._owns(u, owners, entry.id)
            )
        ]
        sequence = CleanupSequence(self.logger)
        for unit_name in unit_names:
            if unit_name.endswith(".timer"):
                sequence.add_action(
                    lambda u=unit_name: self.controller.stop_timer(u),
                    f"arrêt de {unit_name}",
                )
                sequence.add_action(
                    lambda u=unit_name: self.controller.disable_timer(u),
                    f"désactivation de {unit_name}",
                )
            else:
                sequence.add_action(
                    lambda u=unit_name: self.controller.stop(u),
                    f"arrêt de {unit_name}",
                )
                sequence.add_action(
                    lambda u=unit_name: self.controller.disable(u),
                    f"désactivation de {unit_name}",
                )

        sequence.execute()

        steps: list[Step] = [
            (TransactionStep.GENERATE_UNITS,
             lambda u=unit_name: self.generator.remove_unit(u))
            for unit_name in unit_names
        ]
        steps.append((TransactionStep.RELOAD, self.controller.daemon_reload))
        self._apply(snapshot, steps)
        self._commit(snapshot)
        return entry

    def _current_units(self, entry: Entry) -> set[str]:
        return {
            self.namer.service_unit(entry.id, entry.kind),
            self.namer.timer_unit(entry.id, entry.kind),
        }

    def _owns(self, unit_name: str, entries: list[Entry],
              entry_id: str) -> bool:
        """Indique si une unité se résout vers l'entrée donnée.

        Un nom historique peut coïncider avec l'identifiant d'une autre
        entrée ; le schéma actuel l'emporte alors.
        """
        parsed = self.namer.parse(unit_name)
        if parsed is None:
            return False
        match = self.namer.resolve(parsed, entries)
        return match is not None and match[0].id == entry_id

    def _unit_files(self, entry: Entry) -> list[str]:
        """Fichiers unit possibles d'une entrée, tous schémas confondus."""
        suffixes = [".service"]
        if entry.kind == UnitKind.SYNC:
            suffixes.append(".timer")
        return [
            base + suffix
            for base, _ in self.namer.candidates(entry)
            for suffix in suffixes
        ]

    def _migrate_legacy_units(self, previous: Entry, entry: Entry) -> None:
        """Supprime les unités de l'ancien schéma après une mise à jour.

        Les noms historiques de l'ancienne et de la nouvelle version de
        l'entrée sont examinés ; seules les unités présentes sur disque
        sont traitées, et seulement si elles se rattachent bien à cette
        entrée. Chaque étape est tentée sans interrompre les suivantes.
        """
        current = self._current_units(entry)
        owners = [*self.store.entries(entry.kind), previous]
        stale = []
        for candidate in (previous, entry):
            for unit_name in self._unit_files(candidate):
                path = self.generator.unit_dir / unit_name
                if (unit_name not in current and unit_name not in stale
                        and path.exists()
                        and self._owns(unit_name, owners, entry.id)):
                    stale.append(unit_name)
        if not stale:
            return

        sequence = CleanupSequence(self.logger)
        for unit_name in stale:
            sequence.add_action(
                lambda u=unit_name: self.controller.stop(u),
                f"arrêt de {unit_name}",
            )
            sequence.add_action(
                lambda u=unit_name: self.controller.disable(u),
                f"désactivation de {unit_name}",
            )
            sequence.add_action(
                lambda u=unit_name: self.generator.remove_unit(u),
                f"suppression de {unit_name}",
            )
        sequence.add_action(self.controller.daemon_reload, "daemon-reload")
        self.logger.log_info(
            f"Migration des unités historiques: {', '.join(stale)}"
        )
        sequence.execute()
