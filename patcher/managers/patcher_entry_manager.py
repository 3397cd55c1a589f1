"""Normalisation de la ligne microcode dans les entrées systemd-boot.

Politique appliquée à chaque entrée:
1. retirer toutes les lignes `initrd` microcode existantes;
2. en réinsérer une seule (la première trouvée, chemin conservé) juste avant
   la *première* ligne `initrd` initramfs;
3. à défaut, juste après la première ligne `linux`;
4. une entrée sans ligne `linux` n'est pas une entrée Linux: elle est ignorée.

Le retrait systématique avant réinsertion rend l'opération idempotente.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from loguru import logger

from ..config.patcher_config import PatcherConfig
from ..io.entry_parsing_utils import DirectiveKind, DirectiveLine, initrd_prefix, line_ending
from ..io.patcher_entry_io import list_entries, read_entry, write_back
from ..models.patcher_boot_entry import BootEntry, EntryStatus, PatchResult
from ..patcher_exceptions import BackupFailedError, EntryUnreadableError, WriteFailedError


def _microcode_line(
    anchor: DirectiveLine, image: str, newline: str, existing: DirectiveLine | None = None
) -> DirectiveLine:
    """Construit la ligne microcode à insérer.

    Une ligne microcode déjà présente est reprise telle quelle (chemin compris,
    ex: `/EFI/arch/amd-ucode.img`); sinon la ligne reprend l'indentation de la
    ligne d'ancrage.
    """
    if existing is not None:
        body = existing.raw[: len(existing.raw) - len(line_ending(existing.raw))]
        return DirectiveLine(DirectiveKind.INITRD_MICROCODE, f"{body}{newline}")
    prefix = initrd_prefix(anchor.raw)
    if prefix is None:
        indent = anchor.raw[: len(anchor.raw) - len(anchor.raw.lstrip())]
        prefix = f"{indent}initrd "
    return DirectiveLine(DirectiveKind.INITRD_MICROCODE, f"{prefix}{image}{newline}")


def patch_entry(entry: BootEntry, config: PatcherConfig) -> PatchResult:
    """Applique la politique d'ordre microcode à une entrée (sans I/O).

    Returns:
        PatchResult avec le statut SKIPPED, UNCHANGED ou PATCHED.
    """
    original = entry.text
    if not entry.has_linux:
        logger.debug(f"[patch_entry] Pas de ligne 'linux': {entry.path}")
        return PatchResult(EntryStatus.SKIPPED, original, original)

    newline = entry.newline
    # Un fichier sans retour à la ligne final le reste après insertion.
    final_newline = bool(line_ending(entry.lines[-1].raw))

    existing = next((line for line in entry.lines if line.kind is DirectiveKind.INITRD_MICROCODE), None)
    lines = [line for line in entry.lines if line.kind is not DirectiveKind.INITRD_MICROCODE]
    removed = len(entry.lines) - len(lines)
    if removed:
        logger.debug(f"[patch_entry] {removed} ligne(s) microcode retirée(s)")
    if not line_ending(lines[-1].raw):
        lines[-1] = DirectiveLine(lines[-1].kind, lines[-1].raw + newline)

    normalized = BootEntry(path=entry.path, lines=lines)
    initramfs_index = normalized.first_index(DirectiveKind.INITRD_INITRAMFS)
    if initramfs_index is not None:
        anchor = lines[initramfs_index]
        microcode = _microcode_line(anchor, config.microcode_image, line_ending(anchor.raw), existing)
        lines.insert(initramfs_index, microcode)
        logger.debug(f"[patch_entry] Insertion avant la ligne {initramfs_index + 1}: {anchor.raw.strip()}")
    else:
        linux_index = normalized.first_index(DirectiveKind.LINUX_IMAGE)
        anchor = lines[linux_index]
        microcode = _microcode_line(anchor, config.microcode_image, line_ending(anchor.raw), existing)
        lines.insert(linux_index + 1, microcode)
        logger.debug(f"[patch_entry] Pas d'initramfs, insertion après la ligne {linux_index + 1}")

    if not final_newline:
        last = lines[-1].raw
        lines[-1] = DirectiveLine(lines[-1].kind, last[: len(last) - len(line_ending(last))])

    new_text = "".join(line.raw for line in lines)
    status = EntryStatus.UNCHANGED if new_text == original else EntryStatus.PATCHED
    return PatchResult(status, original, new_text)


@dataclass
class EntryOutcome:
    """Issue du traitement d'une entrée, telle que rapportée à l'utilisateur."""

    path: Path
    status: EntryStatus
    message: str
    backup_path: str | None = None
    error: str | None = None


@dataclass
class BatchReport:
    """Rapport d'une exécution sur un répertoire d'entrées."""

    entries_dir: Path
    dry_run: bool = False
    outcomes: list[EntryOutcome] = field(default_factory=list)

    @property
    def nothing_to_do(self) -> bool:
        return not self.outcomes

    @property
    def failed(self) -> list[EntryOutcome]:
        return [o for o in self.outcomes if o.status is EntryStatus.FAILED]

    @property
    def changed(self) -> bool:
        return any(o.status is EntryStatus.PATCHED for o in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 1 if self.failed else 0

    def counts(self) -> dict[str, int]:
        """Nombre d'entrées par statut (tous les statuts sont présents)."""
        result = {status.value: 0 for status in EntryStatus}
        for outcome in self.outcomes:
            result[outcome.status.value] += 1
        return result


class EntryPatchManager:
    """Traite séquentiellement toutes les entrées d'un répertoire."""

    # pylint: disable=too-few-public-methods

    def __init__(self, config: PatcherConfig):
        """Initialise le gestionnaire avec la configuration d'exécution."""
        self.config = config

    def run(self) -> BatchReport:
        """Normalise chaque entrée; un échec par entrée n'interrompt jamais le lot.

        Raises:
            EntryDirectoryError: si le répertoire ne peut pas être énuméré.
        """
        logger.info(f"[run] Configuration des entrées systemd-boot dans: {self.config.entries_dir}")
        report = BatchReport(entries_dir=self.config.entries_dir, dry_run=self.config.dry_run)

        for path in list_entries(self.config.entries_dir, self.config.entry_glob):
            report.outcomes.append(self._process_entry(path))

        if report.nothing_to_do:
            logger.info("[run] Aucune entrée trouvée, rien à faire")
        elif not report.changed:
            logger.info("[run] Les entrées systemd-boot sont déjà correctes")
        elif not self.config.dry_run:
            logger.success("[run] Entrées mises à jour, sauvegardes créées à côté des entrées")

        if report.failed:
            logger.error(f"[run] {len(report.failed)} entrée(s) en échec")
        return report

    def _process_entry(self, path: Path) -> EntryOutcome:
        logger.info(f"[_process_entry] Vérification de l'entrée: {path}")
        try:
            original_bytes, entry = read_entry(path, self.config.microcode_name)
        except EntryUnreadableError as e:
            return EntryOutcome(path, EntryStatus.FAILED, str(e), error=type(e).__name__)

        result = patch_entry(entry, self.config)
        if result.status is EntryStatus.SKIPPED:
            logger.warning(f"[_process_entry] Pas de ligne 'linux', entrée ignorée: {path}")
            return EntryOutcome(path, EntryStatus.SKIPPED, "pas de ligne 'linux'")

        if result.status is EntryStatus.UNCHANGED:
            logger.info(f"[_process_entry] Aucun changement nécessaire: {path}")
            return EntryOutcome(path, EntryStatus.UNCHANGED, "déjà correcte")

        action = "ligne microcode réordonnée" if entry.has_microcode else "ligne microcode insérée"
        if self.config.dry_run:
            logger.info(f"[_process_entry] (dry-run) {action}: {path}")
            return EntryOutcome(path, EntryStatus.PATCHED, f"{action} (dry-run, non écrit)")

        try:
            backup = write_back(path, result.new_text.encode("utf-8"), original_bytes, self.config.clock)
        except BackupFailedError as e:
            return EntryOutcome(path, EntryStatus.FAILED, str(e), error=type(e).__name__)
        except WriteFailedError as e:
            return EntryOutcome(path, EntryStatus.FAILED, str(e), backup_path=e.backup_path, error=type(e).__name__)

        logger.success(f"[_process_entry] {action}: {path}")
        return EntryOutcome(path, EntryStatus.PATCHED, action, backup_path=str(backup))
