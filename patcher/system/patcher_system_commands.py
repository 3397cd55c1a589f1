"""Commandes système appelées autour du patcher.

Installation du paquet microcode, détection du chargeur de démarrage et
régénération de grub.cfg. Ces outils sont externes: on ne fait que les lancer.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from ..config.patcher_paths import GRUB_DIRS, find_entries_dir, find_grub_cfg_path
from ..patcher_exceptions import PatcherCommandError


@dataclass(frozen=True)
class CommandResult:
    """Résultat d'une commande système."""

    returncode: int
    stdout: str
    stderr: str


class Bootloader(Enum):
    """Chargeur de démarrage détecté."""

    SYSTEMD_BOOT = "systemd-boot"
    GRUB = "grub"
    UNKNOWN = "unknown"


def resolve_executable(name: str) -> str | None:
    """Résout un exécutable en ajoutant les répertoires sbin au PATH.

    Sous sudo, le PATH peut être restreint et ne pas contenir /usr/sbin.
    """
    base_path = os.environ.get("PATH", "")
    search_path = f"{base_path}:/usr/sbin:/sbin:/usr/bin:/bin"
    return shutil.which(name, path=search_path)


def run_command(cmd: list[str]) -> CommandResult:
    """Exécute `cmd` et retourne stdout/stderr + code retour (127 si introuvable)."""
    logger.info(f"[run_command] Exécution: {' '.join(cmd)}")
    try:
        res = subprocess.run(cmd, capture_output=True, text=True, check=False)
    except FileNotFoundError as e:
        logger.error(f"[run_command] ERREUR: Commande '{cmd[0]}' introuvable - {e}")
        return CommandResult(127, "", f"Commande '{cmd[0]}' introuvable")

    logger.debug(
        f"[run_command] Résultat: returncode={res.returncode}, "
        f"stdout_len={len(res.stdout)}, stderr_len={len(res.stderr)}"
    )
    if res.returncode != 0 and res.stderr:
        logger.error(f"[run_command] Stderr: {res.stderr[:200]}")
    return CommandResult(res.returncode, res.stdout, res.stderr)


def install_microcode_package(package: str) -> CommandResult:
    """Installe le paquet microcode avec pacman. Tout échec est bloquant.

    Raises:
        PatcherCommandError: pacman introuvable ou code retour non nul.
    """
    logger.info(f"[install_microcode_package] Installation du paquet microcode ({package})...")
    pacman = resolve_executable("pacman")
    if not pacman:
        raise PatcherCommandError("pacman introuvable: installation impossible", command="pacman")

    cmd = [pacman, "-Syu", "--needed", "--noconfirm", package]
    result = run_command(cmd)
    if result.returncode != 0:
        raise PatcherCommandError(
            f"Installation de {package} échouée",
            command=" ".join(cmd),
            returncode=result.returncode,
            stderr=result.stderr,
        )
    logger.success(f"[install_microcode_package] {package} installé")
    return result


def is_systemd_boot() -> bool:
    return find_entries_dir() is not None


def is_grub() -> bool:
    if not resolve_executable("grub-mkconfig"):
        return False
    return any(Path(d).is_dir() for d in GRUB_DIRS)


def detect_bootloader() -> Bootloader:
    """Détecte systemd-boot en priorité, puis GRUB."""
    if is_systemd_boot():
        bootloader = Bootloader.SYSTEMD_BOOT
    elif is_grub():
        bootloader = Bootloader.GRUB
    else:
        bootloader = Bootloader.UNKNOWN
    logger.debug(f"[detect_bootloader] {bootloader.value}")
    return bootloader


def regenerate_grub_config(output: Path | None = None) -> CommandResult:
    """Régénère grub.cfg: GRUB charge alors l'image microcode automatiquement.

    Raises:
        PatcherCommandError: grub-mkconfig introuvable ou en échec.
    """
    target = output or find_grub_cfg_path()
    logger.info(f"[regenerate_grub_config] Régénération de la configuration GRUB: {target}")
    grub_mkconfig = resolve_executable("grub-mkconfig")
    if not grub_mkconfig:
        raise PatcherCommandError("grub-mkconfig introuvable", command="grub-mkconfig")

    cmd = [grub_mkconfig, "-o", str(target)]
    result = run_command(cmd)
    if result.returncode != 0:
        raise PatcherCommandError(
            "grub-mkconfig a échoué",
            command=" ".join(cmd),
            returncode=result.returncode,
            stderr=result.stderr,
        )
    logger.success(f"[regenerate_grub_config] {target} régénéré")
    return result
