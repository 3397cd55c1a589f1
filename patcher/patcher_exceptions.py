"""Module d'exceptions personnalisées du patcher d'entrées de boot.

Fournit une hiérarchie d'exceptions spécifiques pour distinguer les échecs
par entrée (qui n'interrompent jamais le lot) des échecs globaux.
"""

from __future__ import annotations


class EntryPatcherError(Exception):
    """Exception de base pour toutes les erreurs du patcher.

    Permet de capturer toutes les erreurs métier avec `except EntryPatcherError`.

    Example:
        try:
            write_back(path, new_bytes, original_bytes)
        except EntryPatcherError as e:
            logger.error(f"Entrée non modifiée: {e}")
    """


class EntryUnreadableError(EntryPatcherError):
    """Fichier d'entrée présent mais illisible ou non décodable.

    L'entrée est ignorée, le traitement continue avec les suivantes.
    """


class BackupFailedError(EntryPatcherError):
    """Impossible de créer la sauvegarde d'une entrée.

    Le patch de cette entrée est abandonné; le fichier original n'est pas touché.
    """


class WriteFailedError(EntryPatcherError):
    """La sauvegarde existe mais l'écriture finale a échoué.

    Attributes:
        backup_path: Sauvegarde à utiliser pour restaurer l'entrée
    """

    def __init__(self, message: str, backup_path: str | None = None):
        """Initialise WriteFailedError avec le chemin de la sauvegarde.

        Args:
            message: Message d'erreur descriptif
            backup_path: Sauvegarde créée avant l'échec (optionnel)
        """
        super().__init__(message)
        self.backup_path = backup_path

    def __str__(self) -> str:
        """Représentation textuelle incluant la marche à suivre."""
        text = super().__str__()
        if self.backup_path:
            text += f" | Restaurez depuis: {self.backup_path}"
        return text


class EntryDirectoryError(EntryPatcherError):
    """Le répertoire des entrées existe mais ne peut pas être énuméré.

    Seule erreur qui interrompt l'ensemble du traitement.
    """


class PatcherCommandError(EntryPatcherError):
    """Erreur lors de l'exécution d'une commande externe (pacman, grub-mkconfig).

    Attributes:
        command: La commande qui a échoué
        returncode: Code de retour
        stderr: Sortie d'erreur

    Example:
        result = run_command(["pacman", "-S", "amd-ucode"])
        if result.returncode != 0:
            raise PatcherCommandError("pacman a échoué", command="pacman", returncode=result.returncode)
    """

    def __init__(
        self,
        message: str,
        command: str | None = None,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        """Initialise PatcherCommandError avec contexte de la commande.

        Args:
            message: Message d'erreur descriptif
            command: Commande qui a échoué (optionnel)
            returncode: Code de retour de la commande (optionnel)
            stderr: Sortie d'erreur (optionnel)
        """
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        """Représentation textuelle enrichie de l'erreur."""
        parts = [super().__str__()]
        if self.command:
            parts.append(f"Commande: {self.command}")
        if self.returncode is not None:
            parts.append(f"Code retour: {self.returncode}")
        if self.stderr:
            parts.append(f"Stderr: {self.stderr[:200]}")  # Limiter la taille
        return " | ".join(parts)
