"""Command-line bootstrap for the aibridge client."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence, TextIO

from .core.errors import BridgeError
from .core.lifecycle import AssistantSession
from .core.models import InvocationContext, RequestKind
from .core.scheduler import AsyncioScheduler
from .services.settings import Settings, SettingsManager, SettingsStore, redact_secret
from .utils import file_io
from .utils import logging as logging_utils

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_LOGGER = logging.getLogger(__name__)
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure structured logging for the client."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(level), log_path)


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``aibridge`` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("AIBRIDGE_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("AIBRIDGE_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        return 2

    if args.dump_settings:
        settings = load_settings(resolved_path, store=store, overrides=cli_overrides or None)
        _dump_settings(settings, store, overrides=cli_overrides)
        return 0

    text = " ".join(args.text).strip()
    try:
        kind = RequestKind.parse(args.kind)
    except ValueError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    try:
        code = file_io.read_text(args.code_file) if args.code_file else ""
    except OSError as exc:
        print(f"Unable to read {args.code_file}: {exc}", file=sys.stderr)
        return 2

    context = InvocationContext(
        current_module=args.module,
        selected_code=code,
        current_script=str(args.code_file or ""),
    )
    manager = SettingsManager(store, overrides=cli_overrides or None)
    try:
        response = asyncio.run(_run_request(manager, kind, text, context))
    except BridgeError as exc:
        _LOGGER.debug("Request failed: %s", exc.to_dict())
        print(f"Error [{exc.error_code}]: {exc.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")
        return 130
    print(response)
    return 0


async def _run_request(
    manager: SettingsManager,
    kind: RequestKind,
    text: str,
    context: InvocationContext,
) -> str:
    session = AssistantSession(manager, AsyncioScheduler())
    return await session.ask(kind, text, context)


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="aibridge",
        add_help=True,
        description="Send one request through the AI bridge or inspect its configuration.",
    )
    parser.add_argument("text", nargs="*", help="Request text (the question or instruction).")
    parser.add_argument(
        "--kind",
        default=RequestKind.CHAT.name,
        help="Request kind by name or tag (chat, analyze, debug, ...). Defaults to CHAT.",
    )
    parser.add_argument(
        "--code-file",
        metavar="PATH",
        type=Path,
        help="File whose contents are sent as the selected code.",
    )
    parser.add_argument(
        "--module",
        default="ScriptEditor",
        help="Editor module reported in the request context.",
    )
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.aibridge/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override a setting for this run, e.g. --set api.model=gpt-4 (repeatable).",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    defaults = Settings()
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        section_name, _, field_name = key.partition(".")
        if not section_name or not field_name:
            raise ValueError(f"Override '{key}' must name a section and field, e.g. api.model.")
        section = getattr(defaults, section_name, None)
        if section is None or section_name not in {item.name for item in fields(Settings)}:
            raise ValueError(f"Unknown settings section '{section_name}'.")
        if field_name not in {item.name for item in fields(section)}:
            raise ValueError(f"Unknown setting '{key}'.")
        expected = type(getattr(section, field_name))
        overrides[key] = _coerce_value(expected, raw_value.strip())
    return overrides


def _coerce_value(target: type, raw_value: str) -> Any:
    normalized = raw_value.strip()
    if target is bool:
        return _parse_bool(normalized)
    if target is int:
        return int(normalized, 10)
    if target is float:
        return float(normalized)
    return normalized


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api"]["api_key"] = redact_secret(payload["api"].get("api_key", ""))
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    output = {"settings": payload, "meta": metadata}
    json.dump(output, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("AIBRIDGE_"))


if __name__ == "__main__":  # pragma: no cover - manual invocation
    raise SystemExit(main())
