"""Configuration pytest: harnais de tests avec sécurité.

Active:
- Blocage subprocess (sécurité: aucun pacman/grub-mkconfig réel)
- Limites CPU/RAM Linux (protection machine)
- Faulthandler pour diagnostiquer les hangs
"""

import os
import subprocess
import sys
from pathlib import Path

# Ajouter le dossier racine du projet au PYTHONPATH
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import pytest
from loguru import logger


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _apply_resource_limits() -> None:
    """Applique des limites CPU/RAM au process de test (Linux).

    Contrôle via env:
      - PYTEST_CPU_LIMIT_SECONDS (défaut 300)
      - PYTEST_MEM_LIMIT_MB (défaut 2048)
      - PYTEST_DISABLE_RESOURCE_LIMITS=1 pour désactiver
    """
    if os.environ.get("PYTEST_DISABLE_RESOURCE_LIMITS") in {"1", "true", "yes"}:
        return

    if sys.platform != "linux":
        return

    try:
        import resource
    except ImportError:
        return

    cpu_seconds = _env_int("PYTEST_CPU_LIMIT_SECONDS", 300)
    mem_bytes = _env_int("PYTEST_MEM_LIMIT_MB", 2048) * 1024 * 1024

    try:
        resource.setrlimit(resource.RLIMIT_CPU, (cpu_seconds, cpu_seconds + 1))
    except (ValueError, OSError):
        pass

    try:
        resource.setrlimit(resource.RLIMIT_AS, (mem_bytes, mem_bytes))
    except (ValueError, OSError):
        pass


def _enable_faulthandler() -> None:
    """Active les dumps de stack en cas de hang/timeout."""
    import faulthandler

    faulthandler.enable(all_threads=True)


def pytest_configure(config):
    """Configuration globale de pytest."""
    del config
    _apply_resource_limits()
    _enable_faulthandler()

    # Stabiliser Loguru pendant les tests: pas d'enqueue (thread/queue).
    logger.remove()
    logger.add(sys.stderr, enqueue=False)


@pytest.fixture(autouse=True)
def secure_subprocess(monkeypatch):
    """Empêche les appels subprocess réels pendant les tests (pacman, grub-mkconfig, sudo)."""

    def mocked_run(*args, **kwargs):
        cmd = args[0] if args else kwargs.get("args")
        raise RuntimeError(f"SÉCURITÉ : Appel subprocess non autorisé dans les tests : {cmd}")

    monkeypatch.setattr(subprocess, "run", mocked_run)
    monkeypatch.setattr(subprocess, "Popen", mocked_run)
    monkeypatch.setattr(subprocess, "call", mocked_run)
    monkeypatch.setattr(subprocess, "check_call", mocked_run)
    monkeypatch.setattr(subprocess, "check_output", mocked_run)

    yield


@pytest.fixture
def entries_dir(tmp_path):
    """Répertoire `loader/entries` temporaire."""
    path = tmp_path / "loader" / "entries"
    path.mkdir(parents=True)
    return path


def pytest_sessionfinish(session, exitstatus):
    """Arrête proprement les handlers Loguru en fin de session."""
    del session, exitstatus
    logger.complete()
    logger.remove()
