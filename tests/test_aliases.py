from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from cronfile import AliasTable, ConfigurationError


def test_default_aliases_loaded() -> None:
    table = AliasTable().load_defaults()
    assert table.resolve("@weekly") == "0 0 * * 0"
    assert table.resolve("every_week") == "0 0 * * 0"
    assert table.resolve("every_five_minutes") == "*/5 * * * *"
    assert table.resolve("@hourly") == "0 * * * *"
    assert sorted(table.names_for("0 0 1 1 *")) == ["@annually", "@yearly"]


def test_resolve_passes_unknown_keys_through() -> None:
    table = AliasTable().load({"*/2 * * * *": "every_two_minutes"})
    assert table.resolve("13 4 * * *") == "13 4 * * *"
    assert table.resolve("start") == "start"


def test_load_accepts_single_name_or_list() -> None:
    table = AliasTable().load({"0 9 * * 1-5": ["weekday_morning", "standup"], "0 18 * * 5": "friday_evening"})
    assert table.as_dict() == {
        "weekday_morning": "0 9 * * 1-5",
        "standup": "0 9 * * 1-5",
        "friday_evening": "0 18 * * 5",
    }


def test_alias_pointing_at_alias_rejected() -> None:
    table = AliasTable().load({"0 9 * * *": "morning"})
    with pytest.raises(ConfigurationError, match="cannot point at other aliases"):
        table.load({"morning": "early"})


def test_reserved_names_cannot_be_aliases() -> None:
    with pytest.raises(ConfigurationError, match="reserved"):
        AliasTable().load({"0 0 * * *": "stop"})


@pytest.mark.parametrize(
    "mapping",
    [
        {"": "empty_key"},
        {"0 0 * * *": 7},
        {"0 0 * * *": []},
        {"0 0 * * *": ["ok", None]},
    ],
)
def test_malformed_mapping_rejected(mapping: dict) -> None:
    table = AliasTable()
    with pytest.raises(ConfigurationError):
        table.load(mapping)
    assert len(table) == 0


def test_expression_syntax_not_validated_on_load() -> None:
    table = AliasTable().load({"not a cron": "lazy"})
    assert table.resolve("lazy") == "not a cron"


def test_load_file(tmp_path: Path) -> None:
    path = tmp_path / "aliases.yaml"
    path.write_text(yaml.safe_dump({"0 6 * * *": ["dawn", "sunrise"]}), encoding="utf-8")
    table = AliasTable().load_file(path)
    assert table.resolve("sunrise") == "0 6 * * *"


def test_load_file_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "aliases.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError, match="must be a mapping"):
        AliasTable().load_file(path)


def test_load_file_missing(tmp_path: Path) -> None:
    with pytest.raises(ConfigurationError, match="Could not read"):
        AliasTable().load_file(tmp_path / "absent.yaml")
