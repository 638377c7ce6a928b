"""Fonctions de validation pour les noms d'unités systemd."""

import re


# Nom d'unité systemd : lettres, chiffres, points, tirets, underscores, ':'
_UNIT_NAME_RE = re.compile(r'^[a-zA-Z0-9][a-zA-Z0-9:._@-]*$')

UNIT_SUFFIXES = (".service", ".timer")


def validate_unit_name(name: str) -> str:
    """Valide un nom d'unité systemd, avec ou sans suffixe.

    Accepte les caractères : lettres, chiffres, points, tirets,
    underscores, arobases et deux-points. Le premier caractère doit
    être alphanumérique.

    Args:
        name: Nom d'unité à valider (ex: "mount-ab12cd34.service").

    Returns:
        Le nom validé.

    Raises:
        ValueError: Si le nom est invalide.
    """
    if not name:
        raise ValueError("Le nom d'unité ne peut pas être vide")
    if '..' in name or '/' in name:
        raise ValueError(
            f"Nom d'unité invalide (traversée interdite) : {name!r}"
        )
    if not _UNIT_NAME_RE.match(name):
        raise ValueError(
            f"Nom d'unité invalide : {name!r}"
        )
    return name


def validate_unit_filename(filename: str) -> str:
    """Valide un nom de fichier unit géré (.service ou .timer).

    Args:
        filename: Nom de fichier à valider.

    Returns:
        Le nom validé.

    Raises:
        ValueError: Si le nom est invalide ou le suffixe non géré.
    """
    validate_unit_name(filename)
    if not filename.endswith(UNIT_SUFFIXES):
        raise ValueError(
            f"Suffixe d'unité non géré : {filename!r} "
            f"(attendu : {', '.join(UNIT_SUFFIXES)})"
        )
    return filename
