"""Shared pytest fixtures for issue-relay tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from fakes import FakeChannel, FakeTracker, channel_config, tracker_config
from issue_relay.config import Config
from issue_relay.config_schema import MappingConfig, UnifiedConfig
from issue_relay.sync.engine import ReconciliationEngine
from issue_relay.sync.oplog import OperationLog
from issue_relay.sync.state import LocalCache


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that talk to real Notion/Discord APIs",
    )


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "live: mark test as requiring live Notion/Discord credentials"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch, tmp_path):
    """Keep developer env vars and config files out of every test."""
    for var in (
        "ISSUE_RELAY_CONFIG",
        "RELAY_STATE_DIR",
        "DISCORD_PUBLIC_KEY",
        "RELAY_CRON_SECRET",
        "RELAY_REQUEST_TIMEOUT",
        "RELAY_MAX_PARALLEL_REQUESTS",
        "RELAY_HOST",
        "RELAY_PORT",
        "RELAY_DEBUG",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def unified() -> UnifiedConfig:
    """One tracker, one channel, one match-all mapping ``m1``."""
    return UnifiedConfig(
        trackers=[tracker_config("bugs")],
        channels=[channel_config("triage")],
        mappings=[MappingConfig(id="m1", tracker="bugs", channel="triage")],
    )


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    return tmp_path / "state"


@pytest.fixture
def cache(state_dir: Path) -> LocalCache:
    return LocalCache(state_dir)


@pytest.fixture
def oplog(state_dir: Path) -> OperationLog:
    return OperationLog(state_dir)


@pytest.fixture
def fake_tracker() -> FakeTracker:
    return FakeTracker()


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel("triage")


@pytest.fixture
def make_engine(cache, oplog):
    """Factory: engine over *config* with trackers/channels looked up by id."""

    def _make(
        config: UnifiedConfig,
        trackers: dict[str, FakeTracker],
        channels: dict[str, FakeChannel],
        **kwargs,
    ) -> ReconciliationEngine:
        kwargs.setdefault("call_timeout", 5.0)
        return ReconciliationEngine(
            config,
            cache,
            oplog,
            lambda conn: trackers[conn.id],
            lambda ch: channels[ch.id],
            **kwargs,
        )

    return _make


@pytest.fixture
def engine(make_engine, unified, fake_tracker, fake_channel) -> ReconciliationEngine:
    return make_engine(unified, {"bugs": fake_tracker}, {"triage": fake_channel})


@pytest.fixture
def runtime_config(state_dir: Path) -> Config:
    return Config(state_dir=state_dir, request_timeout=5.0)


@pytest.fixture
def relay_services(unified, runtime_config, fake_tracker, fake_channel):
    """Full service graph over the fake tracker and channel."""
    from issue_relay.services import build_services

    return build_services(
        unified,
        runtime_config,
        tracker_factory=lambda conn: fake_tracker,
        channel_factory=lambda ch: fake_channel,
    )
