from pathlib import Path

import pytest

from bailiff.catalog import Catalog, build_catalog
from bailiff.plugins import default_contributions

ENV_KEYS = ("BOT_TOKEN", "STORE_URI", "TIMEOUT_SECONDS")


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run in an empty directory with none of the config variables set."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def catalog() -> Catalog:
    return build_catalog(default_contributions())
