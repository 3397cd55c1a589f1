"""Tests pour patcher/config/patcher_paths.py - Chemins système."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import patcher.config.patcher_paths
from patcher.config.patcher_paths import (
    DEFAULT_MICROCODE_IMAGE,
    ENTRIES_DIRS,
    GRUB_CFG_PATH,
    GRUB_CFG_PATHS,
    find_entries_dir,
    find_grub_cfg_path,
    find_microcode_image,
)


class TestConstants:
    """Tests pour les constantes de chemins."""

    def test_entries_dirs_order(self):
        """/boot est prioritaire sur /efi."""
        assert ENTRIES_DIRS == ["/boot/loader/entries", "/efi/loader/entries"]

    def test_default_microcode_image(self):
        assert DEFAULT_MICROCODE_IMAGE == "/amd-ucode.img"

    def test_grub_cfg_path_is_first(self):
        assert GRUB_CFG_PATH == GRUB_CFG_PATHS[0]

    def test_constants_are_final(self):
        annotations = getattr(patcher.config.patcher_paths, "__annotations__", {})
        assert "Final" in str(annotations["ENTRIES_DIRS"])


class TestFinders:
    """Tests pour les fonctions de découverte."""

    def test_find_entries_dir_first(self):
        with patch.object(Path, "is_dir", side_effect=[True]):
            assert find_entries_dir() == Path("/boot/loader/entries")

    def test_find_entries_dir_efi(self):
        with patch.object(Path, "is_dir", side_effect=[False, True]):
            assert find_entries_dir() == Path("/efi/loader/entries")

    def test_find_entries_dir_none(self):
        with patch.object(Path, "is_dir", return_value=False):
            assert find_entries_dir() is None

    def test_find_grub_cfg_second(self):
        with patch.object(Path, "is_file", side_effect=[False, True]):
            assert find_grub_cfg_path() == Path("/boot/grub2/grub.cfg")

    def test_find_grub_cfg_default(self):
        """Retour au chemin Arch par défaut même s'il n'existe pas."""
        with patch.object(Path, "is_file", return_value=False):
            assert find_grub_cfg_path() == Path(GRUB_CFG_PATH)

    def test_find_microcode_image_in_efi(self):
        with patch.object(Path, "is_file", side_effect=[False, True]):
            assert find_microcode_image("/amd-ucode.img") == Path("/efi/amd-ucode.img")

    def test_find_microcode_image_missing(self):
        with patch.object(Path, "is_file", return_value=False):
            assert find_microcode_image("/intel-ucode.img") is None
