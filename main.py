"""Point d'entrée principal (production).

Ce lanceur configure le logging, demande une élévation unique via `sudo` si
nécessaire, puis place la ligne microcode dans les entrées de boot (systemd-boot)
ou régénère grub.cfg (GRUB).
"""

import argparse
import json
import os
import shutil
import sys
from pathlib import Path

from loguru import logger

from patcher.config.patcher_config import PatcherConfig
from patcher.config.patcher_paths import (
    DEFAULT_MICROCODE_IMAGE,
    DEFAULT_MICROCODE_PACKAGE,
    find_entries_dir,
    find_microcode_image,
)
from patcher.config.patcher_runtime import configure_logging
from patcher.io.patcher_entry_io import list_entries, list_entry_backups, restore_entry_backup
from patcher.managers.patcher_entry_manager import BatchReport, EntryPatchManager
from patcher.patcher_exceptions import EntryPatcherError, PatcherCommandError
from patcher.system.patcher_system_commands import (
    Bootloader,
    detect_bootloader,
    install_microcode_package,
    regenerate_grub_config,
)

# Loguru installe un handler par défaut (niveau DEBUG) dès l'import.
# On le retire ici pour éviter des logs DEBUG en mode normal, avant l'appel
# explicite à configure_logging().
try:
    logger.remove()
except (TypeError, ValueError):
    pass

SUDO_GUARD_ENV = "UCODE_PATCHER_SUDO"


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="ucode-entry-patcher",
        description="Charge le microcode CPU en premier dans les entrées de boot (systemd-boot/GRUB)",
    )
    p.add_argument("--entries-dir", type=Path, help="Répertoire d'entrées à traiter (sinon détection automatique)")
    p.add_argument("--microcode-image", default=DEFAULT_MICROCODE_IMAGE, help="Image microcode (défaut: %(default)s)")
    p.add_argument("--package", default=DEFAULT_MICROCODE_PACKAGE, help="Paquet microcode (défaut: %(default)s)")
    p.add_argument("--install", action="store_true", help="Installer le paquet microcode avant de patcher")
    p.add_argument("--dry-run", action="store_true", help="Afficher les changements sans rien écrire")
    p.add_argument("--restore", type=Path, metavar="BACKUP", help="Restaurer une entrée depuis une sauvegarde")
    p.add_argument("--list-backups", action="store_true", help="Lister les sauvegardes des entrées")
    p.add_argument("-o", "--output", choices=["text", "json"], default="text")
    p.add_argument("--log-file", type=Path, help="Fichier de log rotatif")
    p.add_argument("--verbose", action="store_true", help="Logs INFO sur stderr")
    p.add_argument("--debug", action="store_true", help="Logs DEBUG sur stderr")
    return p


def format_report(report: BatchReport, output: str = "text") -> str:
    """Met en forme le rapport d'exécution (une ligne par entrée)."""
    if output == "json":
        return json.dumps(
            {
                "entries_dir": str(report.entries_dir),
                "dry_run": report.dry_run,
                "nothing_to_do": report.nothing_to_do,
                "counts": report.counts(),
                "entries": [
                    {
                        "path": str(o.path),
                        "status": o.status.value,
                        "message": o.message,
                        "backup": o.backup_path,
                        "error": o.error,
                    }
                    for o in report.outcomes
                ],
            },
            ensure_ascii=False,
            indent=2,
        )

    if report.nothing_to_do:
        return f"Aucune entrée dans {report.entries_dir}: rien à faire."
    lines = []
    for o in report.outcomes:
        line = f"{o.status.value.upper():<9} {o.path}: {o.message}"
        if o.backup_path:
            line += f" (sauvegarde: {o.backup_path})"
        lines.append(line)
    summary = ", ".join(f"{count} {status}" for status, count in report.counts().items() if count)
    lines.append(f"Total: {summary}")
    return "\n".join(lines)


def _needs_root(args: argparse.Namespace, target: Path | None) -> bool:
    if args.dry_run or args.list_backups:
        return False
    if args.install:
        return True
    if target is None or not target.exists():
        return False
    return not os.access(target, os.W_OK)


def _reexec_as_root_once() -> None:
    """Relance le processus via sudo une seule fois."""
    if os.geteuid() == 0:
        return

    if os.environ.get(SUDO_GUARD_ENV) == "1":
        # Si on revient ici avec ce flag, c'est que sudo a échoué: pas de boucle.
        print("Impossible d'obtenir les droits administrateur (sudo a échoué).", file=sys.stderr)
        raise SystemExit(1)

    sudo = shutil.which("sudo")
    if not sudo:
        print("Cette opération nécessite les droits administrateur. Relancez en root.", file=sys.stderr)
        raise SystemExit(1)

    script_path = str(Path(__file__).resolve())
    args = [sudo, "env", f"{SUDO_GUARD_ENV}=1", sys.executable, script_path, *sys.argv[1:]]
    try:
        os.execv(sudo, args)
    except OSError:
        print("Impossible d'obtenir les droits administrateur (sudo a échoué).", file=sys.stderr)
        raise SystemExit(1) from None


def _post_checks(microcode_image: str) -> None:
    found = find_microcode_image(microcode_image)
    if found:
        print(f" - Image microcode trouvée: {found}")
    else:
        logger.warning(f"[_post_checks] {Path(microcode_image).name} introuvable dans /boot ou /efi")
        print(
            f" - {Path(microcode_image).name} introuvable dans /boot ou /efi. "
            "Cela peut être normal selon le montage de l'ESP, mais vérifiez."
        )
    print(" - Après redémarrage, vérifiez avec: dmesg | grep -i microcode")


def _list_backups(entries_dir: Path) -> int:
    for entry in list_entries(entries_dir):
        for backup in list_entry_backups(entry):
            print(f"{entry}\t{backup}")
    return 0


def _patch_entries(args: argparse.Namespace, entries_dir: Path) -> int:
    config = PatcherConfig(
        entries_dir=entries_dir,
        microcode_image=args.microcode_image,
        dry_run=args.dry_run,
    )
    report = EntryPatchManager(config).run()
    print(format_report(report, args.output))
    for outcome in report.failed:
        if outcome.backup_path:
            print(f"ATTENTION: état incertain pour {outcome.path}, restaurez avec --restore {outcome.backup_path}")
    return report.exit_code


def _run_main(argv: list[str] | None = None) -> int:
    """Exécute l'outil et retourne un code de sortie."""
    args = build_parser().parse_args(argv)
    entries_dir = args.entries_dir or find_entries_dir()

    # Élévation avant logging: évite un doublon de logs (process initial + root).
    target = args.restore.parent if args.restore else entries_dir
    if _needs_root(args, target):
        _reexec_as_root_once()

    configure_logging(debug=args.debug, verbose=args.verbose, log_file=args.log_file)
    logger.debug(f"[main] Arguments: {vars(args)}")

    if args.restore:
        try:
            restored = restore_entry_backup(args.restore)
        except (ValueError, FileNotFoundError, EntryPatcherError) as e:
            print(f"Restauration impossible: {e}", file=sys.stderr)
            return 1
        print(f"Restauré: {restored}")
        return 0

    if args.list_backups:
        if entries_dir is None:
            print("Aucun répertoire d'entrées systemd-boot trouvé.", file=sys.stderr)
            return 1
        return _list_backups(entries_dir)

    if args.install and not args.dry_run:
        try:
            install_microcode_package(args.package)
        except PatcherCommandError as e:
            print(f"Installation échouée: {e}", file=sys.stderr)
            return 1

    bootloader = Bootloader.SYSTEMD_BOOT if args.entries_dir else detect_bootloader()
    if bootloader is Bootloader.SYSTEMD_BOOT and entries_dir is not None:
        exit_code = _patch_entries(args, entries_dir)
    elif bootloader is Bootloader.GRUB:
        if args.dry_run:
            print("GRUB détecté: grub.cfg serait régénéré (dry-run).")
            exit_code = 0
        else:
            try:
                regenerate_grub_config()
                exit_code = 0
            except PatcherCommandError as e:
                print(f"Régénération GRUB échouée: {e}", file=sys.stderr)
                exit_code = 1
    else:
        logger.warning("[main] Ni systemd-boot ni GRUB détecté avec certitude")
        print(
            "Chargeur de démarrage non détecté. Le microcode doit être chargé en premier:\n"
            f" - systemd-boot: ajoutez 'initrd {args.microcode_image}' AVANT la ligne initrd de l'initramfs\n"
            " - GRUB: lancez 'grub-mkconfig -o /boot/grub/grub.cfg'",
            file=sys.stderr,
        )
        return 0

    _post_checks(args.microcode_image)
    logger.info(f"[main] Terminé avec le code {exit_code}")
    return exit_code


def main(argv: list[str] | None = None) -> None:
    """Point d'entrée Python.

    Les tests (et certains usages) attendent que `main()` termine via SystemExit.
    """
    try:
        exit_code = _run_main(argv)
    except EntryPatcherError as exc:
        logger.error(f"[main] Erreur critique: {exc}")
        print(f"Erreur: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc
    raise SystemExit(exit_code)


def _main_entry() -> int:
    try:
        return _run_main()
    except SystemExit as exc:
        return int(getattr(exc, "code", 1) or 0)
    except (EntryPatcherError, OSError) as exc:
        logger.error(f"[main] Erreur critique: {exc}")
        print(f"Erreur: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(_main_entry())
