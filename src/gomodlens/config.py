from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from datetime import date, datetime, time
from pathlib import Path
from typing import TypeAlias

from loguru import logger

from gomodlens.tidy import ALL_INDIRECT_CHECKS, IndirectCheck, TidyOptions

DEFAULT_CONFIG_NAME = "gomodlens.toml"
DEFAULT_FACTS_PATH = Path(".gomodlens/facts.json")
DEFAULT_TIMEOUT_MS = 10_000
TIMEOUT_ENV = "GOMODLENS_TIMEOUT_MS"

TomlScalar: TypeAlias = str | int | float | bool | None | date | datetime | time
TomlValue: TypeAlias = TomlScalar | list["TomlValue"] | dict[str, "TomlValue"]
TomlTable: TypeAlias = dict[str, TomlValue]


@dataclass(frozen=True)
class DiagnosticsOptions:
    temp_modfile: bool = True
    tidy: TidyOptions = TidyOptions()
    facts_path: Path = DEFAULT_FACTS_PATH
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    scratch_dir: Path | None = None


def _load_toml(path: Path) -> TomlTable:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError:
        return {}
    except UnicodeDecodeError as exc:
        logger.warning("ignoring undecodable config {}: {}", path, exc)
        return {}
    try:
        data = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        logger.warning("ignoring malformed config {}: {}", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(root: Path | None = None, config_path: Path | None = None) -> TomlTable:
    if config_path is None:
        base = root if root is not None else Path.cwd()
        config_path = base / DEFAULT_CONFIG_NAME
    return _load_toml(config_path)


def diagnostics_defaults(
    root: Path | None = None, config_path: Path | None = None
) -> TomlTable:
    data = load_config(root=root, config_path=config_path)
    section = data.get("diagnostics", {})
    return section if isinstance(section, dict) else {}


def _as_bool(value: TomlValue, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return default


def _normalize_name_list(value: TomlValue) -> list[str]:
    items: list[str] = []
    if isinstance(value, str):
        items = [part.strip() for part in value.split(",")]
    elif isinstance(value, list):
        for item in value:
            if isinstance(item, str):
                items.extend(part.strip() for part in item.split(","))
    return [item for item in items if item]


def indirect_checks(value: TomlValue) -> frozenset[IndirectCheck]:
    if value is None:
        return ALL_INDIRECT_CHECKS
    checks: set[IndirectCheck] = set()
    for name in _normalize_name_list(value):
        try:
            checks.add(IndirectCheck(name))
        except ValueError:
            logger.warning("unknown indirect check {!r} ignored", name)
    return frozenset(checks)


def _positive_int(value: TomlValue, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int) and value > 0:
        return value
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            return default
        return parsed if parsed > 0 else default
    return default


def diagnostics_options(
    root: Path | None = None,
    config_path: Path | None = None,
    overrides: TomlTable | None = None,
) -> DiagnosticsOptions:
    section = diagnostics_defaults(root=root, config_path=config_path)
    env_timeout = _positive_int(os.getenv(TIMEOUT_ENV, "").strip() or None, 0)
    if env_timeout:
        section = merge_payload({"timeout_ms": env_timeout}, section)
    section = merge_payload(overrides or {}, section)
    facts = section.get("facts_path")
    facts_path = Path(facts) if isinstance(facts, str) and facts else DEFAULT_FACTS_PATH
    if root is not None and not facts_path.is_absolute():
        facts_path = root / facts_path
    timeout_ms = _positive_int(section.get("timeout_ms"), DEFAULT_TIMEOUT_MS)
    scratch = section.get("scratch_dir")
    return DiagnosticsOptions(
        temp_modfile=_as_bool(section.get("temp_modfile"), True),
        tidy=TidyOptions(
            indirect_checks=indirect_checks(section.get("indirect_checks")),
            report_duplicates=_as_bool(section.get("report_duplicates"), True),
        ),
        facts_path=facts_path,
        timeout_ms=timeout_ms,
        scratch_dir=Path(scratch) if isinstance(scratch, str) and scratch else None,
    )


def merge_payload(payload: TomlTable, defaults: TomlTable) -> TomlTable:
    merged = dict(defaults)
    for key, value in payload.items():
        if value is None:
            continue
        merged[key] = value
    return merged
