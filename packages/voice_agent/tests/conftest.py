from __future__ import annotations

import asyncio
from pathlib import Path

import pytest

_TUNING_VARS = (
    "VOICE_AGENT_LOG_LEVEL",
    "SETTLE_DELAY_SECONDS",
    "TREE_SETTLE_DELAY_SECONDS",
    "APP_RENDER_DELAY_SECONDS",
    "APP_WAIT_TIMEOUT_SECONDS",
    "MAX_HISTORY_MESSAGES",
    "MAX_STORED_HISTORY",
    "MAX_PENDING_MESSAGES",
)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("VOICE_AGENT_DATA_DIR", str(tmp_path / "data"))
    for name in _TUNING_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Make asyncio.sleep yield immediately and record the requested delays."""
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def _fake_sleep(delay: float, *args: object, **kwargs: object) -> None:
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", _fake_sleep)
    return delays
