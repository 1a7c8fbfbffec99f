from pathlib import Path

import pytest

from decision_guardian.config import EngineSettings, GuardianConfig, default_config_path, load_config
from decision_guardian.errors import InvalidConfigSchemaError, InvalidYamlFormatError
from decision_guardian.models import DiffMode


def test_missing_config_uses_defaults(tmp_path: Path) -> None:
    config = load_config(default_config_path(tmp_path))

    assert config == GuardianConfig()
    assert config.engine.batch_size == 50
    assert config.engine.regex_timeout_seconds == 5.0


def test_missing_required_config(tmp_path: Path) -> None:
    with pytest.raises(InvalidConfigSchemaError, match="file does not exist"):
        load_config(tmp_path / "custom.yml", required=True)


def test_load_full_config(tmp_path: Path) -> None:
    path = default_config_path(tmp_path)
    path.write_text(
        "\n".join(
            [
                "decisions: docs/decisions",
                "mode: branch",
                "base_branch: develop",
                "fail_on_critical: true",
                "engine:",
                "  regex_timeout_seconds: 1.5",
                "  regex_workers: 2",
                "  batch_size: 10",
            ]
        ),
        encoding="utf-8",
    )

    config = load_config(path)

    assert config.decisions == "docs/decisions"
    assert config.mode == DiffMode.BRANCH
    assert config.base_branch == "develop"
    assert config.fail_on_critical is True
    assert config.engine == EngineSettings(
        regex_timeout_seconds=1.5, regex_workers=2, regex_cache_size=500, batch_size=10
    )
    assert config.source_path == path


def test_empty_config_file(tmp_path: Path) -> None:
    path = default_config_path(tmp_path)
    path.write_text("", encoding="utf-8")

    assert load_config(path) == GuardianConfig(source_path=path)


@pytest.mark.parametrize(
    "content",
    [
        "mode: everything",
        "unknown_key: 1",
        "engine:\n  batch_size: 0",
        "- a list",
    ],
)
def test_schema_violations(tmp_path: Path, content: str) -> None:
    path = default_config_path(tmp_path)
    path.write_text(content, encoding="utf-8")

    with pytest.raises(InvalidConfigSchemaError):
        load_config(path)


def test_invalid_yaml(tmp_path: Path) -> None:
    path = default_config_path(tmp_path)
    path.write_text("mode: [staged", encoding="utf-8")

    with pytest.raises(InvalidYamlFormatError):
        load_config(path)
