import shutil
from pathlib import Path
import tempfile
import pytest

from ai_changelog.config.loader import ENV_OVERRIDES


@pytest.fixture(scope="session", autouse=True)
def isolate_home_config():
    """Temporarily move any existing user-level config out of the way.

    Some tests expect no user-level config to exist. This fixture moves the
    file aside for the duration of the test session and restores it afterwards.
    """
    home = Path.home()
    config_path = home / ".aichangelog" / "config.json"
    backup_dir = None
    moved = False
    if config_path.exists():
        backup_dir = Path(tempfile.mkdtemp(prefix="aichangelog_backup_"))
        shutil.move(str(config_path), str(backup_dir / "config.json"))
        moved = True

    try:
        yield
    finally:
        # restore
        if moved and backup_dir is not None:
            dst_dir = config_path.parent
            dst_dir.mkdir(parents=True, exist_ok=True)
            shutil.move(str(backup_dir / "config.json"), str(config_path))
            shutil.rmtree(str(backup_dir), ignore_errors=True)


@pytest.fixture(autouse=True)
def clear_provider_env(monkeypatch):
    """Keep provider credentials from the developer's shell out of tests."""
    for variable in ENV_OVERRIDES:
        monkeypatch.delenv(variable, raising=False)
