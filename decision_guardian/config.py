"""Optional ``.decision-guardian.yml`` project configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from jsonschema import Draft202012Validator

from decision_guardian.constants import (
    CONFIG_FILENAME,
    DEFAULT_DECISIONS_PATH,
    REGEX_CACHE_SIZE,
    REGEX_SANDBOX_WORKERS,
    REGEX_TIMEOUT_SECONDS,
    RULE_BATCH_SIZE,
)
from decision_guardian.errors import InvalidConfigSchemaError, InvalidYamlFormatError
from decision_guardian.models import DiffMode
from decision_guardian.rules.schema import schema_error_message

CONFIG_SCHEMA: dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "decisions": {"type": "string", "minLength": 1},
        "mode": {"enum": [mode.value for mode in DiffMode]},
        "base_branch": {"type": "string", "minLength": 1},
        "fail_on_critical": {"type": "boolean"},
        "engine": {
            "type": "object",
            "additionalProperties": False,
            "properties": {
                "regex_timeout_seconds": {"type": "number", "exclusiveMinimum": 0},
                "regex_workers": {"type": "integer", "minimum": 1},
                "regex_cache_size": {"type": "integer", "minimum": 1},
                "batch_size": {"type": "integer", "minimum": 1},
            },
        },
    },
}


@dataclass(frozen=True)
class EngineSettings:
    regex_timeout_seconds: float = REGEX_TIMEOUT_SECONDS
    regex_workers: int = REGEX_SANDBOX_WORKERS
    regex_cache_size: int = REGEX_CACHE_SIZE
    batch_size: int = RULE_BATCH_SIZE


@dataclass(frozen=True)
class GuardianConfig:
    decisions: str = DEFAULT_DECISIONS_PATH
    mode: DiffMode = DiffMode.STAGED
    base_branch: str = "main"
    fail_on_critical: bool = False
    engine: EngineSettings = field(default_factory=EngineSettings)
    source_path: Optional[Path] = None


@lru_cache(maxsize=1)
def _config_validator() -> Draft202012Validator:
    return Draft202012Validator(CONFIG_SCHEMA)


def default_config_path(root: Path) -> Path:
    return root / CONFIG_FILENAME


def load_config(path: Path, required: bool = False) -> GuardianConfig:
    if not path.exists():
        if required:
            raise InvalidConfigSchemaError(path, "file does not exist")
        return GuardianConfig()

    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise InvalidYamlFormatError(path, str(exc)) from exc

    if payload is None:
        return GuardianConfig(source_path=path)
    if not isinstance(payload, dict):
        raise InvalidConfigSchemaError(path, "must be a mapping")
    error = next(iter(_config_validator().iter_errors(payload)), None)
    if error is not None:
        raise InvalidConfigSchemaError(path, schema_error_message(error))

    engine_raw = payload.get("engine", {})
    defaults = EngineSettings()
    engine = EngineSettings(
        regex_timeout_seconds=float(
            engine_raw.get("regex_timeout_seconds", defaults.regex_timeout_seconds)
        ),
        regex_workers=int(engine_raw.get("regex_workers", defaults.regex_workers)),
        regex_cache_size=int(engine_raw.get("regex_cache_size", defaults.regex_cache_size)),
        batch_size=int(engine_raw.get("batch_size", defaults.batch_size)),
    )
    return GuardianConfig(
        decisions=str(payload.get("decisions", DEFAULT_DECISIONS_PATH)),
        mode=DiffMode(payload.get("mode", DiffMode.STAGED.value)),
        base_branch=str(payload.get("base_branch", "main")),
        fail_on_critical=bool(payload.get("fail_on_critical", False)),
        engine=engine,
        source_path=path,
    )
