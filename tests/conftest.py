# tests/conftest.py
import pytest

from utils.config import Config


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Keep the user's config file and BombusCV variables out of every test."""
    for var in ("BOMBUSCV_CONFIG", "BOMBUSCV_DIRECTORY", "BOMBUSCV_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))


@pytest.fixture
def config(tmp_path):
    """Defaults only, with file logging disabled and output in tmp_path."""
    cfg = Config(configs_dir=str(tmp_path / "configs"), load_user=False)
    cfg.set('logging.file', False)
    cfg.set('capture.directory', str(tmp_path))
    return cfg
