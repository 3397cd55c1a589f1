"""Tests pour la classification des lignes d'entrée systemd-boot."""

import pytest

from patcher.io.entry_parsing_utils import (
    DirectiveKind,
    classify_line,
    classify_lines,
    initrd_prefix,
    line_ending,
)

UCODE = "amd-ucode.img"


class TestClassifyLine:
    """Tests pour classify_line."""

    @pytest.mark.parametrize(
        "line",
        ["linux /vmlinuz-linux", "linux   /vmlinuz-linux\n", "  linux\t/vmlinuz-linux-lts\r\n"],
    )
    def test_linux_image(self, line):
        """Les lignes `linux <chemin>` sont reconnues malgré les espaces."""
        result = classify_line(line, UCODE)
        assert result.kind is DirectiveKind.LINUX_IMAGE
        assert result.raw == line

    @pytest.mark.parametrize(
        "line",
        ["initrd /amd-ucode.img\n", "initrd  amd-ucode.img", "\tinitrd /EFI/arch/amd-ucode.img  \n"],
    )
    def test_microcode(self, line):
        """L'image microcode est reconnue par son nom de fichier, avec ou sans répertoire."""
        assert classify_line(line, UCODE).kind is DirectiveKind.INITRD_MICROCODE

    @pytest.mark.parametrize(
        "line",
        [
            "initrd /initramfs-linux.img\n",
            "initrd  /initramfs-linux-fallback.img",
            "initrd /EFI/arch/initramfs-linux-zen.img\n",
        ],
    )
    def test_initramfs(self, line):
        assert classify_line(line, UCODE).kind is DirectiveKind.INITRD_INITRAMFS

    @pytest.mark.parametrize(
        "line",
        [
            "# initrd /amd-ucode.img\n",
            "#linux /vmlinuz-linux\n",
            "title Arch Linux\n",
            "options root=UUID=1234 rw\n",
            "linuxefi /vmlinuz\n",
            "linux\n",
            "initrd /intel-ucode.img\n",
            "initrd /amd-ucode.img /initramfs-linux.img\n",
            "",
        ],
    )
    def test_other(self, line):
        """Commentaires, options et lignes ambiguës restent opaques."""
        assert classify_line(line, UCODE).kind is DirectiveKind.OTHER

    def test_custom_microcode_name(self):
        """Le nom de l'image microcode est configurable."""
        assert classify_line("initrd /intel-ucode.img", "intel-ucode.img").kind is DirectiveKind.INITRD_MICROCODE
        assert classify_line("initrd /amd-ucode.img", "intel-ucode.img").kind is DirectiveKind.OTHER


class TestClassifyLines:
    """Tests pour classify_lines."""

    def test_keeps_line_endings(self):
        text = "title Arch\nlinux /vmlinuz-linux\r\ninitrd /initramfs-linux.img"
        lines = classify_lines(text, UCODE)

        assert [line.kind for line in lines] == [
            DirectiveKind.OTHER,
            DirectiveKind.LINUX_IMAGE,
            DirectiveKind.INITRD_INITRAMFS,
        ]
        assert "".join(line.raw for line in lines) == text

    def test_empty_text(self):
        assert classify_lines("", UCODE) == []


class TestHelpers:
    """Tests pour initrd_prefix et line_ending."""

    def test_initrd_prefix(self):
        assert initrd_prefix("  initrd   /initramfs-linux.img\n") == "  initrd   "
        assert initrd_prefix("linux /vmlinuz") is None

    @pytest.mark.parametrize(
        ("line", "expected"),
        [("a\n", "\n"), ("a\r\n", "\r\n"), ("a\r", "\r"), ("a", "")],
    )
    def test_line_ending(self, line, expected):
        assert line_ending(line) == expected
