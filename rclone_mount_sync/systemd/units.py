"""Dataclasses de rendu des fichiers unit systemd."""

from dataclasses import dataclass, field
from typing import ClassVar


@dataclass(frozen=True)
class ServiceConfig:
    """Configuration pour une unité .service utilisateur.

    Attributes:
        description: Description de l'unité pour systemd.
        exec_start: Commande principale (lignes de continuation permises).
        type: Type de service (simple, notify, oneshot, ...).
        documentation: Référence de documentation.
        after: Unités après lesquelles démarrer.
        wants: Dépendances faibles.
        start_limit_interval_sec: Fenêtre de limitation des démarrages.
        start_limit_burst: Nombre de démarrages autorisés dans la fenêtre.
        condition_ac_power: Ne démarrer que sur secteur.
        exec_condition: Commande de garde exécutée avant ExecStart.
        exec_start_pre: Commande exécutée avant ExecStart.
        exec_stop: Commande d'arrêt.
        exec_stop_post: Commande exécutée après l'arrêt.
        working_directory: Répertoire de travail.
        environment: Variables d'environnement (dict).
        restart: Politique de redémarrage.
        restart_sec: Délai avant redémarrage (ex: "5s").
        extra_directives: Directives [Service] supplémentaires.
        wanted_by: Cible d'installation.
    """

    _VALID_TYPES: ClassVar[tuple[str, ...]] = (
        "simple", "exec", "forking", "oneshot",
        "dbus", "notify", "idle",
    )
    _VALID_RESTART: ClassVar[tuple[str, ...]] = (
        "no", "always", "on-success", "on-failure",
        "on-abnormal", "on-abort", "on-watchdog",
    )

    description: str
    exec_start: str
    type: str = "simple"
    documentation: str = ""
    after: tuple[str, ...] = ()
    wants: tuple[str, ...] = ()
    start_limit_interval_sec: int = 0
    start_limit_burst: int = 0
    condition_ac_power: bool = False
    exec_condition: str = ""
    exec_start_pre: str = ""
    exec_stop: str = ""
    exec_stop_post: str = ""
    working_directory: str = ""
    environment: dict[str, str] = field(default_factory=dict)
    restart: str = "no"
    restart_sec: str = ""
    extra_directives: tuple[tuple[str, str], ...] = ()
    wanted_by: str = "default.target"

    def __post_init__(self) -> None:
        """Valide que les champs requis sont présents et cohérents."""
        if not self.exec_start:
            raise ValueError("'exec_start' est requis")
        if self.type not in self._VALID_TYPES:
            raise ValueError(
                f"Type de service invalide : {self.type!r} "
                f"(valeurs acceptées : {', '.join(self._VALID_TYPES)})"
            )
        if self.restart not in self._VALID_RESTART:
            raise ValueError(
                f"Politique de redémarrage invalide : {self.restart!r} "
                f"(valeurs acceptées : "
                f"{', '.join(self._VALID_RESTART)})"
            )
        self._validate_environment()

    def _validate_environment(self) -> None:
        """Valide les variables d'environnement contre l'injection."""
        for key, value in self.environment.items():
            if "\n" in key or "=" in key:
                raise ValueError(
                    f"Clé d'environnement invalide : {key!r}"
                )
            if "\n" in value:
                raise ValueError(
                    f"Valeur d'environnement invalide pour "
                    f"{key!r} : retour à la ligne interdit"
                )

    def to_unit_file(self) -> str:
        """Génère le contenu d'un fichier .service systemd.

        Returns:
            Contenu du fichier .service.
        """
        lines = ["[Unit]", f"Description={self.description}"]
        if self.documentation:
            lines.append(f"Documentation={self.documentation}")
        if self.after:
            lines.append(f"After={' '.join(self.after)}")
        if self.wants:
            lines.append(f"Wants={' '.join(self.wants)}")
        if self.start_limit_interval_sec:
            lines.append(
                f"StartLimitIntervalSec={self.start_limit_interval_sec}"
            )
        if self.start_limit_burst:
            lines.append(f"StartLimitBurst={self.start_limit_burst}")
        if self.condition_ac_power:
            lines.append("ConditionACPower=true")

        lines.extend(["", "[Service]", f"Type={self.type}"])
        if self.exec_condition:
            lines.append(f"ExecCondition={self.exec_condition}")
        if self.exec_start_pre:
            lines.append(f"ExecStartPre={self.exec_start_pre}")
        lines.append(f"ExecStart={self.exec_start}")
        if self.exec_stop:
            lines.append(f"ExecStop={self.exec_stop}")
        if self.exec_stop_post:
            lines.append(f"ExecStopPost={self.exec_stop_post}")
        if self.working_directory:
            lines.append(f"WorkingDirectory={self.working_directory}")

        for key, value in self.environment.items():
            lines.append(f'Environment="{key}={value}"')

        if self.restart != "no":
            lines.append(f"Restart={self.restart}")
            if self.restart_sec:
                lines.append(f"RestartSec={self.restart_sec}")

        for key, value in self.extra_directives:
            lines.append(f"{key}={value}")

        lines.extend([
            "",
            "[Install]",
            f"WantedBy={self.wanted_by}"
        ])

        return "\n".join(lines) + "\n"


@dataclass(frozen=True)
class TimerConfig:
    """Configuration pour une unité .timer utilisateur.

    Attributes:
        description: Description de l'unité pour systemd.
        unit: Nom de l'unité à déclencher (ex: "sync-ab12cd34.service").
        documentation: Référence de documentation.
        on_calendar: Expression de calendrier (ex: "daily").
        on_boot_sec: Délai après le démarrage (ex: "5min").
        on_unit_active_sec: Délai après la dernière activation de l'unité.
        persistent: Rattraper les exécutions manquées après un arrêt.
        randomized_delay_sec: Délai aléatoire ajouté (ex: "1h").
    """

    description: str
    unit: str
    documentation: str = ""
    on_calendar: str = ""
    on_boot_sec: str = ""
    on_unit_active_sec: str = ""
    persistent: bool = False
    randomized_delay_sec: str = ""

    def __post_init__(self) -> None:
        """Valide que les champs requis sont présents."""
        if not self.unit:
            raise ValueError("'unit' est requis")

    def to_unit_file(self) -> str:
        """Génère le contenu d'un fichier .timer systemd.

        Sans aucune directive de déclenchement, le timer s'exécute
        quotidiennement.

        Returns:
            Contenu du fichier .timer.
        """
        lines = ["[Unit]", f"Description={self.description}"]
        if self.documentation:
            lines.append(f"Documentation={self.documentation}")
        lines.extend(["", "[Timer]", f"Unit={self.unit}"])

        triggers = []
        if self.on_calendar:
            triggers.append(f"OnCalendar={self.on_calendar}")
        if self.on_boot_sec:
            triggers.append(f"OnBootSec={self.on_boot_sec}")
        if self.on_unit_active_sec:
            triggers.append(f"OnUnitActiveSec={self.on_unit_active_sec}")
        if not triggers:
            triggers.append("OnCalendar=daily")
        lines.extend(triggers)

        if self.randomized_delay_sec:
            lines.append(f"RandomizedDelaySec={self.randomized_delay_sec}")
        if self.persistent:
            lines.append("Persistent=true")

        lines.extend([
            "",
            "[Install]",
            "WantedBy=timers.target"
        ])

        return "\n".join(lines) + "\n"
