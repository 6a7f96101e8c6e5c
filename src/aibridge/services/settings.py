"""Settings dataclasses, persistence and validation."""

from __future__ import annotations

import json
import logging
import math
import os
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..core.events import EventBus, SettingsChanged
from ..core.history import DEFAULT_MAX_ENTRIES, MAX_HISTORY_LIMIT
from ..utils import file_io

__all__ = [
    "Provider",
    "ApiSettings",
    "BehaviorSettings",
    "UiSettings",
    "Settings",
    "SettingsStore",
    "SettingsManager",
    "SecretVault",
    "validate_settings",
    "apply_overrides",
    "redact_secret",
    "TEMPERATURE_RANGE",
    "MAX_TOKENS_RANGE",
]

LOGGER = logging.getLogger(__name__)
_SETTINGS_DIR = Path.home() / ".aibridge"
_DEFAULT_SETTINGS_PATH = _SETTINGS_DIR / "settings.json"
_DEFAULT_EXCHANGE_DIR = _SETTINGS_DIR / "exchange"
_SETTINGS_VERSION = 1
_API_KEY_FIELD = "api_key_ciphertext"
_SECTIONS: Mapping[str, str] = {
    "api": "api_settings",
    "behavior": "behavior_settings",
    "ui": "ui_settings",
}
_ENV_OVERRIDES: Mapping[str, tuple[str, str, Callable[[str], Any]]] = {
    "AIBRIDGE_PROVIDER": ("api", "provider", str),
    "AIBRIDGE_API_KEY": ("api", "api_key", str),
    "AIBRIDGE_CUSTOM_ENDPOINT": ("api", "custom_endpoint", str),
    "AIBRIDGE_MODEL": ("api", "model", str),
    "AIBRIDGE_TEMPERATURE": ("api", "temperature", float),
    "AIBRIDGE_MAX_TOKENS": ("api", "max_tokens", int),
    "AIBRIDGE_REQUEST_FILE": ("api", "request_file", str),
    "AIBRIDGE_RESPONSE_FILE": ("api", "response_file", str),
    "AIBRIDGE_RESPONSE_TIMEOUT": ("api", "response_timeout", float),
}

TEMPERATURE_RANGE: tuple[float, float] = (0.0, 2.0)
MAX_TOKENS_RANGE: tuple[int, int] = (64, 60_000)


class Provider(Enum):
    """AI providers the bridge process knows about; the value is the wire id."""

    CLAUDE = "claude"
    OPENAI = "openai"
    LOCAL_MODEL = "ollama"
    CUSTOM_ENDPOINT = "custom"

    @classmethod
    def parse(cls, value: str | Provider) -> Provider:
        """Accept a member, its wire id (``ollama``) or its name (``LOCAL_MODEL``)."""

        if isinstance(value, Provider):
            return value
        normalized = str(value).strip()
        try:
            return cls(normalized.lower())
        except ValueError:
            pass
        try:
            return cls[normalized.upper()]
        except KeyError:
            raise ValueError(f"Unknown AI provider: {value!r}") from None

    @property
    def requires_api_key(self) -> bool:
        return self is not Provider.LOCAL_MODEL


@dataclass(slots=True)
class ApiSettings:
    """Provider, model and exchange-file configuration."""

    provider: str = Provider.CLAUDE.value
    api_key: str = ""
    custom_endpoint: str = ""
    model: str = "claude-3-sonnet-20240229"
    temperature: float = 0.7
    max_tokens: int = 4000
    request_file: str = str(_DEFAULT_EXCHANGE_DIR / "ai_request.json")
    response_file: str = str(_DEFAULT_EXCHANGE_DIR / "ai_response.json")
    poll_interval: float = 0.5
    response_timeout: float = 60.0


@dataclass(slots=True)
class BehaviorSettings:
    """How the assistant behaves inside the editor."""

    auto_insert_code: bool = False
    show_confirmation_dialogs: bool = True
    save_request_history: bool = True
    max_history_entries: int = DEFAULT_MAX_ENTRIES
    code_style: str = "Standard"


@dataclass(slots=True)
class UiSettings:
    show_tooltips: bool = True
    theme: str = "Dark"


@dataclass(slots=True)
class Settings:
    """User-configurable settings persisted between sessions."""

    api: ApiSettings = field(default_factory=ApiSettings)
    behavior: BehaviorSettings = field(default_factory=BehaviorSettings)
    ui: UiSettings = field(default_factory=UiSettings)


def validate_settings(settings: Settings) -> list[str]:
    """Return every problem with ``settings``; an empty list means valid.

    The checks are independent of one another.
    """

    problems: list[str] = []
    api = settings.api
    try:
        provider: Provider | None = Provider.parse(api.provider)
    except ValueError:
        provider = None
        problems.append(f"Unknown AI provider '{api.provider}'.")

    if provider is not Provider.LOCAL_MODEL and not api.api_key:
        problems.append("An API key is required for the selected provider.")
    if provider is Provider.CUSTOM_ENDPOINT and not api.custom_endpoint.strip():
        problems.append("A custom endpoint URL is required for the custom provider.")
    max_history = settings.behavior.max_history_entries
    if max_history < 0 or max_history > MAX_HISTORY_LIMIT:
        problems.append(f"History size must be between 0 and {MAX_HISTORY_LIMIT}.")
    if not api.request_file.strip() or not api.response_file.strip():
        problems.append("Request and response file paths must not be empty.")
    if api.max_tokens <= 0:
        problems.append("Max tokens must be positive.")
    low, high = TEMPERATURE_RANGE
    if not low <= api.temperature <= high:
        problems.append(f"Temperature must be between {low} and {high}.")
    if not _positive_finite(api.poll_interval):
        problems.append("Poll interval must be a positive number of seconds.")
    if not _positive_finite(api.response_timeout):
        problems.append("Response timeout must be a positive number of seconds.")
    return problems


def _positive_finite(value: Any) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(number) and number > 0


class SecretVault:
    """Encrypts the API key at rest with a Fernet key stored beside the settings."""

    name = "fernet"

    def __init__(self, *, key_path: Path | None = None) -> None:
        self._key_path = key_path or (_SETTINGS_DIR / "settings.key")
        self._fernet: Fernet | None = None

    @property
    def strategy(self) -> str:
        return self.name

    def encrypt(self, secret: str) -> str:
        if not secret:
            return ""
        token = self._get_fernet().encrypt(secret.encode("utf-8")).decode("ascii")
        return f"{self.name}:{token}"

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, _, payload = token.partition(":")
        if prefix != self.name or not payload:
            raise ValueError(f"Unsupported secret token prefix {prefix!r}")
        try:
            return self._get_fernet().decrypt(payload.encode("ascii")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid Fernet token") from exc

    def _get_fernet(self) -> Fernet:
        if self._fernet is None:
            self._fernet = Fernet(self._load_or_create_key())
        return self._fernet

    def _load_or_create_key(self) -> bytes:
        path = self._key_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if path.exists():
            return path.read_bytes().strip()
        key = Fernet.generate_key()
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_bytes(key)
        if os.name != "nt":  # pragma: no cover - depends on OS
            os.chmod(tmp_path, 0o600)
        tmp_path.replace(path)
        return key


class SettingsStore:
    """Persistence adapter for :class:`Settings`."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self._path = Path(path) if path is not None else _DEFAULT_SETTINGS_PATH
        self._vault = vault or SecretVault(key_path=self._path.with_suffix(".key"))

    @property
    def path(self) -> Path:
        return self._path

    @property
    def vault(self) -> SecretVault:
        return self._vault

    def exists(self) -> bool:
        return self._path.exists()

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Load settings from disk, falling back to defaults when absent or unparsable.

        ``overrides`` uses dotted keys (``api.model``) and wins over the file;
        ``AIBRIDGE_*`` environment variables win over both.
        """

        return self.layer_overrides(self.load_persisted(), overrides)

    def load_persisted(self) -> Settings:
        """Return only what the settings file holds, migrating legacy payloads."""

        payload = self._read_payload()
        settings = Settings()
        needs_migration = False
        if payload:
            settings, needs_migration = self._deserialize(payload)

        version_mismatch = bool(payload) and payload.get("version") != _SETTINGS_VERSION
        if needs_migration or version_mismatch:
            try:
                self.save(settings)
            except OSError as exc:  # pragma: no cover - read-only profile dirs
                LOGGER.warning("Failed to migrate settings payload: %s", exc)
        return settings

    def layer_overrides(
        self, settings: Settings, overrides: Mapping[str, Any] | None = None
    ) -> Settings:
        """Apply run-scoped ``overrides`` and then the environment on top of ``settings``.

        The result is never written back by the store.
        """

        if overrides:
            settings = apply_overrides(settings, overrides, source="CLI")
        return self._apply_env_overrides(settings)

    def save(self, settings: Settings) -> Path:
        """Persist the full settings object with an atomic write."""

        body = json.dumps(self._serialize(settings), indent=2)
        file_io.write_text(self._path, body)
        LOGGER.debug("Settings saved to %s", self._path)
        return self._path

    def _serialize(self, settings: Settings) -> Dict[str, Any]:
        api = asdict(settings.api)
        api_key = api.pop("api_key", "") or ""
        if api_key:
            try:
                api[_API_KEY_FIELD] = self._vault.encrypt(api_key)
            except (OSError, ValueError) as exc:  # pragma: no cover - key file unwritable
                LOGGER.warning("Failed to encrypt API key; it will not be persisted: %s", exc)
        return {
            "version": _SETTINGS_VERSION,
            "secret_backend": self._vault.strategy,
            "api_settings": api,
            "behavior_settings": asdict(settings.behavior),
            "ui_settings": asdict(settings.ui),
        }

    def _deserialize(self, payload: Mapping[str, Any]) -> tuple[Settings, bool]:
        api_payload = dict(_section(payload, "api_settings"))
        ciphertext = api_payload.pop(_API_KEY_FIELD, None)
        legacy_plaintext = api_payload.pop("api_key", None)
        api_key, migrated = self._decrypt_api_key(ciphertext, legacy_plaintext)

        api = _build_section(ApiSettings, api_payload)
        api = replace(api, api_key=api_key)
        behavior = _build_section(BehaviorSettings, _section(payload, "behavior_settings"))
        ui = _build_section(UiSettings, _section(payload, "ui_settings"))
        return Settings(api=api, behavior=behavior, ui=ui), migrated

    def _read_payload(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(file_io.read_text(self._path))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            LOGGER.warning("Settings file %s is not valid JSON: %s", self._path, exc)
            return {}
        if not isinstance(data, dict):
            LOGGER.warning("Settings file %s does not contain a JSON object", self._path)
            return {}
        return data

    def _decrypt_api_key(
        self, ciphertext: str | None, legacy_plaintext: str | None
    ) -> tuple[str, bool]:
        if ciphertext:
            try:
                return self._vault.decrypt(ciphertext), False
            except ValueError as exc:
                LOGGER.warning("Unable to decrypt API key: %s", exc)
                return "", False
        if legacy_plaintext:
            LOGGER.info("Detected legacy plaintext API key; migrating to encrypted storage.")
            return str(legacy_plaintext), True
        return "", False

    def _apply_env_overrides(self, settings: Settings) -> Settings:
        overrides: Dict[str, Any] = {}
        for env_name, (section, field_name, cast) in _ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value is None:
                continue
            try:
                overrides[f"{section}.{field_name}"] = cast(value.strip())
            except ValueError:
                LOGGER.warning("Environment override %s=%s is not a valid value", env_name, value)
        if overrides:
            settings = apply_overrides(settings, overrides, source="environment")
        return settings


def apply_overrides(
    settings: Settings,
    overrides: Mapping[str, Any],
    *,
    source: str = "runtime",
) -> Settings:
    """Return a copy of ``settings`` with dotted-key ``overrides`` applied."""

    grouped: Dict[str, Dict[str, Any]] = {}
    for key, value in overrides.items():
        section, _, field_name = key.partition(".")
        if section not in _SECTIONS or value is None:
            continue
        allowed = {item.name for item in fields(getattr(settings, section))}
        if field_name not in allowed:
            continue
        grouped.setdefault(section, {})[field_name] = value
    if not grouped:
        return settings
    LOGGER.debug(
        "Applying %s settings overrides: %s",
        source,
        sorted(f"{section}.{name}" for section, values in grouped.items() for name in values),
    )
    updates = {
        section: replace(getattr(settings, section), **values) for section, values in grouped.items()
    }
    return replace(settings, **updates)


class SettingsManager:
    """Process-wide settings holder with write-through setters.

    Constructed once when the host starts: loads the persisted file, or
    persists the defaults when there is none yet. Every setter changes one
    field and immediately saves the whole configuration.

    CLI and environment overrides only shape the in-memory view; the file
    only ever receives the persisted values plus explicit setter calls.
    """

    def __init__(
        self,
        store: SettingsStore | None = None,
        *,
        event_bus: EventBus | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> None:
        self._store = store or SettingsStore()
        self._bus = event_bus
        self._overrides = dict(overrides or {})
        existed = self._store.exists()
        self._persisted = self._store.load_persisted()
        self._settings = self._store.layer_overrides(self._persisted, self._overrides)
        if not existed:
            self._save()

    @property
    def store(self) -> SettingsStore:
        return self._store

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def api(self) -> ApiSettings:
        return self._settings.api

    @property
    def behavior(self) -> BehaviorSettings:
        return self._settings.behavior

    @property
    def ui(self) -> UiSettings:
        return self._settings.ui

    @property
    def provider(self) -> Provider:
        return Provider.parse(self._settings.api.provider)

    @property
    def is_configured(self) -> bool:
        """Local models need no key; every other provider needs one."""
        try:
            provider = self.provider
        except ValueError:
            return False
        return not provider.requires_api_key or bool(self._settings.api.api_key)

    def problems(self) -> list[str]:
        return validate_settings(self._settings)

    def validate(self) -> bool:
        return not self.problems()

    # ------------------------------------------------------------------
    # API settings
    # ------------------------------------------------------------------

    def set_provider(self, provider: Provider | str) -> None:
        self._update("api", "provider", Provider.parse(provider).value)

    def set_api_key(self, api_key: str) -> None:
        self._update("api", "api_key", api_key.strip())

    def set_custom_endpoint(self, endpoint: str) -> None:
        self._update("api", "custom_endpoint", endpoint.strip())

    def set_model(self, model: str) -> None:
        self._update("api", "model", model.strip())

    def set_temperature(self, temperature: float) -> None:
        low, high = TEMPERATURE_RANGE
        self._update("api", "temperature", min(max(float(temperature), low), high))

    def set_max_tokens(self, max_tokens: int) -> None:
        low, high = MAX_TOKENS_RANGE
        self._update("api", "max_tokens", min(max(int(max_tokens), low), high))

    def set_request_file(self, path: Path | str) -> None:
        self._update("api", "request_file", str(path))

    def set_response_file(self, path: Path | str) -> None:
        self._update("api", "response_file", str(path))

    def set_poll_interval(self, seconds: float) -> None:
        self._update("api", "poll_interval", max(0.05, float(seconds)))

    def set_response_timeout(self, seconds: float) -> None:
        self._update("api", "response_timeout", max(1.0, float(seconds)))

    # ------------------------------------------------------------------
    # Behavior and UI settings
    # ------------------------------------------------------------------

    def set_auto_insert_code(self, enabled: bool) -> None:
        self._update("behavior", "auto_insert_code", bool(enabled))

    def set_show_confirmation_dialogs(self, enabled: bool) -> None:
        self._update("behavior", "show_confirmation_dialogs", bool(enabled))

    def set_save_request_history(self, enabled: bool) -> None:
        self._update("behavior", "save_request_history", bool(enabled))

    def set_max_history_entries(self, max_entries: int) -> None:
        self._update("behavior", "max_history_entries", int(max_entries))

    def set_code_style(self, code_style: str) -> None:
        self._update("behavior", "code_style", code_style)

    def set_show_tooltips(self, enabled: bool) -> None:
        self._update("ui", "show_tooltips", bool(enabled))

    def set_theme(self, theme: str) -> None:
        self._update("ui", "theme", theme)

    def reset_to_defaults(self) -> None:
        self._persisted = Settings()
        self._settings = self._store.layer_overrides(self._persisted, self._overrides)
        self._save()
        if self._bus is not None:
            self._bus.publish(SettingsChanged(field="*", value=None))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _update(self, section: str, field_name: str, value: Any) -> None:
        self._persisted = _with_field(self._persisted, section, field_name, value)
        self._settings = _with_field(self._settings, section, field_name, value)
        self._save()
        if self._bus is not None:
            shown = redact_secret(value) if field_name == "api_key" else value
            self._bus.publish(SettingsChanged(field=f"{section}.{field_name}", value=shown))

    def _save(self) -> None:
        try:
            self._store.save(self._persisted)
        except OSError as exc:
            LOGGER.warning("Failed to persist settings to %s: %s", self._store.path, exc)


def _with_field(settings: Settings, section: str, field_name: str, value: Any) -> Settings:
    current = getattr(settings, section)
    return replace(settings, **{section: replace(current, **{field_name: value})})


def _section(payload: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = payload.get(name)
    if isinstance(value, Mapping):
        return value
    if value is not None:
        LOGGER.debug("Ignoring non-mapping %s payload of type %s", name, type(value))
    return {}


def _build_section(cls: type, payload: Mapping[str, Any]) -> Any:
    defaults = cls()
    result: Dict[str, Any] = {}
    for item in fields(cls):
        if item.name not in payload:
            continue
        raw = payload[item.name]
        expected = type(getattr(defaults, item.name))
        try:
            result[item.name] = _coerce(expected, raw)
        except (TypeError, ValueError):
            LOGGER.warning("Settings field %s has invalid value %r; using default", item.name, raw)
    return replace(defaults, **result)


def _coerce(expected: type, raw: Any) -> Any:
    if expected is bool:
        if isinstance(raw, bool):
            return raw
        raise TypeError(f"expected a boolean, got {type(raw).__name__}")
    if expected is int:
        if isinstance(raw, bool):
            raise TypeError("expected an integer, got a boolean")
        return int(raw)
    if expected is float:
        if isinstance(raw, bool):
            raise TypeError("expected a number, got a boolean")
        return float(raw)
    if expected is str:
        if isinstance(raw, (dict, list)):
            raise TypeError(f"expected a string, got {type(raw).__name__}")
        return "" if raw is None else str(raw)
    return raw


def redact_secret(value: str) -> str:
    stripped = (value or "").strip()
    if not stripped:
        return ""
    if len(stripped) <= 4:
        return "*" * len(stripped)
    return f"{stripped[:2]}{'*' * (len(stripped) - 4)}{stripped[-2:]}"
