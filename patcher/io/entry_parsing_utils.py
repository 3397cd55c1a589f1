"""Utilitaires de parsing des entrées systemd-boot.

Ce module centralise les expressions régulières et la classification des lignes
`linux` / `initrd`. Toute autre ligne (options, titre, commentaires) est opaque.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Final


class DirectiveKind(Enum):
    """Nature d'une ligne d'entrée de boot."""

    LINUX_IMAGE = "linux-image"
    INITRD_MICROCODE = "initrd-microcode"
    INITRD_INITRAMFS = "initrd-initramfs"
    OTHER = "other"


@dataclass(frozen=True)
class DirectiveLine:
    """Ligne classifiée. `raw` conserve le texte exact, fin de ligne comprise."""

    kind: DirectiveKind
    raw: str


# `linux <chemin>`; "linuxefi" ou "# linux" ne correspondent pas.
_LINUX_RE: Final = re.compile(r"^\s*linux\s+\S")
# `initrd <chemin>` avec un seul argument.
_INITRD_RE: Final = re.compile(r"^(?P<prefix>\s*initrd\s+)(?P<arg>\S+)\s*$")
_INITRAMFS_NAME_RE: Final = re.compile(r"^initramfs-.*\.img$")
_LINE_ENDING_RE: Final = re.compile(r"(\r\n|\n|\r)$")


def classify_line(line: str, microcode_name: str) -> DirectiveLine:
    """Classe une ligne brute selon les règles fixes du format d'entrée.

    Args:
        line: La ligne, avec ou sans sa fin de ligne
        microcode_name: Nom de fichier de l'image microcode (ex: "amd-ucode.img")

    Returns:
        DirectiveLine portant le type détecté et le texte inchangé
    """
    if _LINUX_RE.match(line):
        return DirectiveLine(DirectiveKind.LINUX_IMAGE, line)

    m = _INITRD_RE.match(line)
    if m:
        # Un éventuel répertoire devant le nom de fichier est toléré (ex: /EFI/arch/).
        filename = m.group("arg").rsplit("/", 1)[-1]
        if filename == microcode_name:
            return DirectiveLine(DirectiveKind.INITRD_MICROCODE, line)
        if _INITRAMFS_NAME_RE.match(filename):
            return DirectiveLine(DirectiveKind.INITRD_INITRAMFS, line)

    return DirectiveLine(DirectiveKind.OTHER, line)


def classify_lines(text: str, microcode_name: str) -> list[DirectiveLine]:
    """Découpe un texte en lignes (fins de ligne conservées) et les classe."""
    return [classify_line(line, microcode_name) for line in text.splitlines(keepends=True)]


def initrd_prefix(line: str) -> str | None:
    """Retourne le préfixe `initrd` (indentation + directive + séparateur) d'une ligne."""
    m = _INITRD_RE.match(line)
    if m:
        return m.group("prefix")
    return None


def line_ending(line: str) -> str:
    """Retourne la fin de ligne de `line` ("\\n", "\\r\\n", "\\r" ou "")."""
    m = _LINE_ENDING_RE.search(line)
    if m:
        return m.group(1)
    return ""
