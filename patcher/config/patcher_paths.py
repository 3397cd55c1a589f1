"""Chemins système et constantes du patcher d'entrées de boot.

Module séparé pour éviter les dépendances circulaires et clarifier les responsabilités.
"""

from __future__ import annotations

from pathlib import Path
from typing import Final

# systemd-boot installe son répertoire loader dans l'ESP.
ENTRIES_DIRS: Final[list[str]] = ["/boot/loader/entries", "/efi/loader/entries"]
ENTRY_GLOB: Final[str] = "*.conf"

DEFAULT_MICROCODE_IMAGE: Final[str] = "/amd-ucode.img"
DEFAULT_MICROCODE_PACKAGE: Final[str] = "amd-ucode"

# Suffixe des sauvegardes: <entry>.bak.YYYYMMDD-HHMMSS
BACKUP_SUFFIX: Final[str] = ".bak"
BACKUP_TIMESTAMP_FORMAT: Final[str] = "%Y%m%d-%H%M%S"

# Certains systèmes utilisent /boot/grub2/grub.cfg.
GRUB_CFG_PATHS: Final[list[str]] = ["/boot/grub/grub.cfg", "/boot/grub2/grub.cfg"]
GRUB_CFG_PATH: Final[str] = GRUB_CFG_PATHS[0]
GRUB_DIRS: Final[list[str]] = ["/boot/grub", "/boot/grub2", "/efi/EFI"]

MICROCODE_SEARCH_DIRS: Final[list[str]] = ["/boot", "/efi"]


def find_entries_dir() -> Path | None:
    """Retourne le premier répertoire d'entrées systemd-boot qui existe.

    Returns:
        Path vers le répertoire des entrées, ou None si systemd-boot n'est pas détecté
    """
    for entries_dir in ENTRIES_DIRS:
        path = Path(entries_dir)
        if path.is_dir():
            return path
    return None


def find_grub_cfg_path() -> Path:
    """Retourne le premier grub.cfg existant (retour au chemin Arch par défaut sinon)."""
    for grub_cfg in GRUB_CFG_PATHS:
        path = Path(grub_cfg)
        if path.is_file():
            return path
    return Path(GRUB_CFG_PATH)


def find_microcode_image(image: str = DEFAULT_MICROCODE_IMAGE) -> Path | None:
    """Cherche l'image microcode dans /boot puis /efi.

    Args:
        image: Chemin de l'image tel qu'écrit dans les entrées (ex: "/amd-ucode.img")

    Returns:
        Le chemin trouvé, ou None
    """
    name = Path(image).name
    for search_dir in MICROCODE_SEARCH_DIRS:
        candidate = Path(search_dir) / name
        if candidate.is_file():
            return candidate
    return None
