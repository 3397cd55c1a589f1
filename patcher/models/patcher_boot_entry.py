"""Modèle d'une entrée de boot et résultat d'un patch.

Une `BootEntry` est relue depuis le disque à chaque exécution, modifiée en
mémoire, puis soit abandonnée soit réécrite avec une sauvegarde.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from ..io.entry_parsing_utils import DirectiveKind, DirectiveLine, classify_lines, line_ending


class EntryStatus(Enum):
    """Issue du traitement d'une entrée."""

    SKIPPED = "skipped"
    UNCHANGED = "unchanged"
    PATCHED = "patched"
    FAILED = "failed"


@dataclass
class BootEntry:
    """Fichier d'entrée systemd-boot sous forme de lignes classifiées."""

    path: Path
    lines: list[DirectiveLine]

    @classmethod
    def from_text(cls, path: Path, text: str, microcode_name: str) -> BootEntry:
        """Construit une entrée à partir du contenu décodé du fichier."""
        return cls(path=path, lines=classify_lines(text, microcode_name))

    @property
    def text(self) -> str:
        """Contenu du fichier, octet pour octet une fois encodé."""
        return "".join(line.raw for line in self.lines)

    @property
    def newline(self) -> str:
        """Fin de ligne dominante du fichier (la première rencontrée, "\\n" par défaut)."""
        for line in self.lines:
            ending = line_ending(line.raw)
            if ending:
                return ending
        return "\n"

    def first_index(self, kind: DirectiveKind) -> int | None:
        """Index de la première ligne de type `kind`, ou None."""
        for index, line in enumerate(self.lines):
            if line.kind is kind:
                return index
        return None

    def count(self, kind: DirectiveKind) -> int:
        return sum(1 for line in self.lines if line.kind is kind)

    @property
    def has_linux(self) -> bool:
        return self.first_index(DirectiveKind.LINUX_IMAGE) is not None

    @property
    def has_microcode(self) -> bool:
        return self.first_index(DirectiveKind.INITRD_MICROCODE) is not None

    @property
    def is_correctly_ordered(self) -> bool:
        """True si la ligne microcode précède la première ligne initramfs (si elle existe)."""
        microcode_index = self.first_index(DirectiveKind.INITRD_MICROCODE)
        if microcode_index is None:
            return False
        initramfs_index = self.first_index(DirectiveKind.INITRD_INITRAMFS)
        return initramfs_index is None or microcode_index < initramfs_index


@dataclass(frozen=True)
class PatchResult:
    """Résultat de `patch_entry`: statut + contenu avant/après."""

    status: EntryStatus
    original_text: str
    new_text: str

    @property
    def changed(self) -> bool:
        return self.new_text != self.original_text
