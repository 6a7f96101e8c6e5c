"""Shared pytest fixtures."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from aibridge.core.events import EventBus
from aibridge.core.lifecycle import AssistantSession
from aibridge.core.scheduler import ManualScheduler
from aibridge.services.settings import SecretVault, SettingsManager, SettingsStore


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("AIBRIDGE_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("AIBRIDGE_LOG_DIR", str(tmp_path / "logs"))


@pytest.fixture
def exchange_dir(tmp_path: Path) -> Path:
    path = tmp_path / "exchange"
    path.mkdir()
    return path


@pytest.fixture
def settings_store(tmp_path: Path) -> SettingsStore:
    return SettingsStore(
        tmp_path / "settings.json", vault=SecretVault(key_path=tmp_path / "settings.key")
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def settings_manager(
    settings_store: SettingsStore, exchange_dir: Path, event_bus: EventBus
) -> SettingsManager:
    manager = SettingsManager(settings_store, event_bus=event_bus)
    manager.set_api_key("sk-test-1234")
    manager.set_request_file(exchange_dir / "ai_request.json")
    manager.set_response_file(exchange_dir / "ai_response.json")
    return manager


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def session(
    settings_manager: SettingsManager, scheduler: ManualScheduler, event_bus: EventBus
) -> AssistantSession:
    return AssistantSession(settings_manager, scheduler, event_bus=event_bus, clock=scheduler)
