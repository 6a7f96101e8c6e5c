"""Shared test helpers and stub classes."""

from __future__ import annotations

from pathlib import Path

from aibridge.services.settings import SettingsManager


class RecordingCallback:
    """Two-method callback that remembers what it was told."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def on_success(self, response: str) -> None:
        self.successes.append(response)

    def on_error(self, error: str) -> None:
        self.errors.append(error)

    @property
    def calls(self) -> int:
        return len(self.successes) + len(self.errors)


def request_path(manager: SettingsManager) -> Path:
    return Path(manager.api.request_file)


def response_path(manager: SettingsManager) -> Path:
    return Path(manager.api.response_file)


def write_response(manager: SettingsManager, body: str) -> Path:
    """Play the bridge process: drop ``body`` into the response file."""

    target = response_path(manager)
    target.write_text(body, encoding="utf-8")
    return target
