"""Configuration explicite passée à chaque opération du patcher.

Aucune opération ne lit l'environnement du process ni le répertoire courant:
tout passe par `PatcherConfig`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .patcher_paths import DEFAULT_MICROCODE_IMAGE, ENTRY_GLOB


@dataclass(frozen=True)
class PatcherConfig:
    """Paramètres d'une exécution du patcher.

    entries_dir: répertoire contenant les entrées (`*.conf`)
    microcode_image: chemin de l'image microcode inséré dans les lignes `initrd`
    entry_glob: motif des fichiers d'entrée
    clock: source d'horodatage utilisée pour nommer les sauvegardes
    dry_run: si True, aucune écriture n'est effectuée
    """

    entries_dir: Path
    microcode_image: str = DEFAULT_MICROCODE_IMAGE
    entry_glob: str = ENTRY_GLOB
    clock: Callable[[], datetime] = field(default=datetime.now, compare=False)
    dry_run: bool = False

    @property
    def microcode_name(self) -> str:
        """Nom de fichier de l'image microcode (ex: "amd-ucode.img")."""
        return Path(self.microcode_image).name
