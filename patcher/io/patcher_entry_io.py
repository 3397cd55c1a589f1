"""Lecture/écriture des fichiers d'entrée systemd-boot (`loader/entries/*.conf`).

Aucune logique de patch ici: énumération, lecture, sauvegarde horodatée et
écriture atomique.
"""

from __future__ import annotations

import os
import re
import shutil
import tempfile
from collections.abc import Callable, Iterator
from datetime import datetime
from fnmatch import fnmatchcase
from glob import escape, glob
from pathlib import Path
from typing import Final

from loguru import logger

from ..config.patcher_paths import BACKUP_SUFFIX, BACKUP_TIMESTAMP_FORMAT, ENTRY_GLOB
from ..models.patcher_boot_entry import BootEntry
from ..patcher_exceptions import (
    BackupFailedError,
    EntryDirectoryError,
    EntryUnreadableError,
    WriteFailedError,
)

# Borne la boucle de désambiguïsation (plusieurs exécutions dans la même seconde).
_MAX_BACKUP_ATTEMPTS: Final[int] = 128

_BACKUP_NAME_RE: Final = re.compile(
    r"^(?P<entry>.+)" + re.escape(BACKUP_SUFFIX) + r"\.\d{8}-\d{6}(?:\.\d+)?$"
)


def _remove_quietly(path: str | Path) -> None:
    """Supprime un fichier temporaire (best-effort)."""
    try:
        os.remove(path)
    except OSError:
        pass


def list_entries(entries_dir: Path, pattern: str = ENTRY_GLOB) -> Iterator[Path]:
    """Énumère paresseusement les fichiers d'entrée, triés par nom.

    Ne lève rien si le répertoire est absent ou vide.

    Raises:
        EntryDirectoryError: si le répertoire existe mais ne peut pas être lu.
    """
    logger.debug(f"[list_entries] Recherche de {pattern} dans {entries_dir}")
    if not entries_dir.is_dir():
        logger.info(f"[list_entries] Répertoire absent: {entries_dir}")
        return

    try:
        names = sorted(child.name for child in entries_dir.iterdir())
    except OSError as e:
        logger.error(f"[list_entries] ERREUR: Énumération impossible de {entries_dir} - {e}")
        raise EntryDirectoryError(f"Impossible de lister {entries_dir}: {e}") from e

    for name in names:
        if not fnmatchcase(name, pattern):
            continue
        candidate = entries_dir / name
        if candidate.is_file():
            yield candidate


def read_entry(path: Path, microcode_name: str) -> tuple[bytes, BootEntry]:
    """Lit une entrée et retourne ses octets bruts et sa forme classifiée.

    Raises:
        EntryUnreadableError: si le fichier ne peut pas être ouvert ou décodé en UTF-8.
    """
    logger.debug(f"[read_entry] Lecture {path}")
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        logger.error(f"[read_entry] ERREUR: Lecture impossible de {path} - {e}")
        raise EntryUnreadableError(f"Lecture impossible: {path}: {e}") from e

    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        logger.error(f"[read_entry] ERREUR: {path} n'est pas en UTF-8 - {e}")
        raise EntryUnreadableError(f"Contenu non décodable: {path}: {e}") from e

    return data, BootEntry.from_text(path, text, microcode_name)


def backup_path_for(path: Path, when: datetime, attempt: int = 0) -> Path:
    """Chemin de sauvegarde `<path>.bak.YYYYMMDD-HHMMSS[.N]`."""
    name = f"{path}{BACKUP_SUFFIX}.{when.strftime(BACKUP_TIMESTAMP_FORMAT)}"
    if attempt:
        name += f".{attempt}"
    return Path(name)


def _write_exclusive(path: Path, data: bytes) -> None:
    """Crée `path` (échoue s'il existe) et y écrit `data` de façon durable."""
    with open(path, "xb") as f:
        f.write(data)
        f.flush()
        os.fsync(f.fileno())


def _create_backup(path: Path, original_bytes: bytes, when: datetime) -> Path:
    """Écrit les octets d'origine dans une sauvegarde qui n'écrase jamais l'existant."""
    for attempt in range(_MAX_BACKUP_ATTEMPTS):
        candidate = backup_path_for(path, when, attempt)
        try:
            _write_exclusive(candidate, original_bytes)
        except FileExistsError:
            logger.debug(f"[_create_backup] {candidate} existe déjà, essai suivant")
            continue
        except OSError as e:
            logger.error(f"[_create_backup] ERREUR: Impossible de créer {candidate} - {e}")
            _remove_quietly(candidate)
            raise BackupFailedError(f"Impossible de créer la sauvegarde de {path}: {e}") from e
        break
    else:
        raise BackupFailedError(f"Aucun nom de sauvegarde libre pour {path}")

    # Même logique que `cp -a`: conserver mode et dates de l'original.
    try:
        shutil.copystat(path, candidate)
    except OSError as e:
        logger.debug(f"[_create_backup] copystat ignoré pour {candidate}: {e}")

    try:
        backup_size = candidate.stat().st_size
    except OSError as e:
        raise BackupFailedError(f"Sauvegarde invérifiable: {candidate}: {e}") from e
    if backup_size != len(original_bytes):
        _remove_quietly(candidate)
        raise BackupFailedError(f"Sauvegarde incomplète: {backup_size} vs {len(original_bytes)} bytes")

    logger.info(f"[_create_backup] Sauvegarde {path} -> {candidate}")
    return candidate


def _atomic_replace(path: Path, data: bytes) -> None:
    """Écrit `data` dans un fichier temporaire voisin puis remplace `path`.

    En cas d'échec, le temporaire est supprimé et `path` reste intact.
    """
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        try:
            shutil.copymode(path, tmp_name)
        except OSError as e:
            # Les ESP en vfat refusent chmod.
            logger.debug(f"[_atomic_replace] copymode ignoré: {e}")
        os.replace(tmp_name, path)
    except BaseException:
        _remove_quietly(tmp_name)
        raise


def write_back(
    path: Path,
    new_bytes: bytes,
    original_bytes: bytes,
    clock: Callable[[], datetime] = datetime.now,
) -> Path:
    """Sauvegarde puis réécrit une entrée. Tout ou rien pour chaque entrée.

    La sauvegarde (octets d'origine) existe toujours avant le remplacement.

    Returns:
        Le chemin de la sauvegarde créée.

    Raises:
        BackupFailedError: sauvegarde impossible, l'original n'a pas été touché.
        WriteFailedError: sauvegarde créée mais écriture échouée, l'original n'a pas été touché.
    """
    logger.debug(f"[write_back] Écriture de {len(new_bytes)} bytes dans {path}")
    backup = _create_backup(path, original_bytes, clock())

    try:
        _atomic_replace(path, new_bytes)
    except OSError as e:
        logger.critical(f"[write_back] ERREUR: Écriture de {path} échouée après sauvegarde - {e}")
        raise WriteFailedError(f"Écriture échouée: {path}: {e}", backup_path=str(backup)) from e

    logger.success(f"[write_back] Succès - {path} (sauvegarde: {backup})")
    return backup


def list_entry_backups(path: Path) -> list[Path]:
    """Liste les sauvegardes d'une entrée, de la plus ancienne à la plus récente."""
    candidates = [Path(p) for p in glob(f"{escape(str(path))}{BACKUP_SUFFIX}.*") if os.path.isfile(p)]
    backups = [p for p in candidates if _BACKUP_NAME_RE.match(p.name)]
    backups.sort(key=lambda p: p.name)
    return backups


def entry_path_for_backup(backup_path: Path) -> Path:
    """Retrouve l'entrée d'origine à partir du nom d'une sauvegarde.

    Raises:
        ValueError: si le nom ne suit pas le format `<entry>.bak.YYYYMMDD-HHMMSS[.N]`.
    """
    m = _BACKUP_NAME_RE.match(backup_path.name)
    if not m:
        raise ValueError(f"Chemin de sauvegarde invalide: {backup_path}")
    return backup_path.with_name(m.group("entry"))


def restore_entry_backup(backup_path: Path) -> Path:
    """Restaure une entrée depuis l'une de ses sauvegardes.

    Returns:
        Le chemin de l'entrée restaurée.

    Raises:
        ValueError: nom de sauvegarde invalide.
        FileNotFoundError: sauvegarde absente.
        WriteFailedError: restauration échouée (l'entrée n'a pas été touchée).
    """
    entry_path = entry_path_for_backup(backup_path)
    logger.info(f"[restore_entry_backup] Restauration {backup_path} -> {entry_path}")

    if not backup_path.is_file():
        raise FileNotFoundError(f"Sauvegarde introuvable: {backup_path}")

    try:
        data = backup_path.read_bytes()
        _atomic_replace(entry_path, data)
    except OSError as e:
        logger.error(f"[restore_entry_backup] ERREUR: {e}")
        raise WriteFailedError(f"Échec de la restauration de {entry_path}: {e}", backup_path=str(backup_path)) from e

    logger.success(f"[restore_entry_backup] Succès - {entry_path} restauré")
    return entry_path
