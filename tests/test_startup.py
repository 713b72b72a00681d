from pathlib import Path

import anyio
import pytest

from bailiff.config import ConfigMissing, StartupTimeout
from bailiff.settings import ConfigResolver, ExecConfig
from bailiff.startup import start


def _resolver(path: Path, timeout: int | None = None) -> ConfigResolver:
    text = 'bot-token = "t"\nstore-uri = "mongodb://x"\n'
    if timeout is not None:
        text += f"timeout-seconds = {timeout}\n"
    path.write_text(text, encoding="utf-8")
    return ConfigResolver(path, env_file=None)


@pytest.mark.anyio
async def test_start_returns_config_and_connection(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path / "bailiff.toml")
    seen: list[ExecConfig] = []

    async def connect(config: ExecConfig) -> str:
        seen.append(config)
        return "connection"

    config, connection = await start(resolver, connect)

    assert connection == "connection"
    assert seen == [config]
    assert config.startup_timeout_seconds == 10


@pytest.mark.anyio
async def test_start_times_out_when_connection_hangs(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path / "bailiff.toml", timeout=1)
    cancelled = False

    async def connect(config: ExecConfig) -> str:
        nonlocal cancelled
        try:
            await anyio.sleep_forever()
        except anyio.get_cancelled_exc_class():
            cancelled = True
            raise
        return "never"

    started = anyio.current_time()
    with pytest.raises(StartupTimeout) as excinfo:
        await start(resolver, connect)

    assert excinfo.value.timeout_seconds == 1
    assert cancelled
    assert anyio.current_time() - started < 5


@pytest.mark.anyio
async def test_start_slow_but_within_deadline(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path / "bailiff.toml", timeout=2)

    async def connect(config: ExecConfig) -> int:
        await anyio.sleep(0.05)
        return 1

    _, connection = await start(resolver, connect)

    assert connection == 1


@pytest.mark.anyio
async def test_config_errors_propagate_unchanged(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.delenv("BOT_TOKEN", raising=False)
    path = tmp_path / "bailiff.toml"
    path.write_text('store-uri = "mongodb://x"\n', encoding="utf-8")

    async def connect(config: ExecConfig) -> None:
        raise AssertionError("connect must not run")

    with pytest.raises(ConfigMissing):
        await start(ConfigResolver(path, env_file=None), connect)
