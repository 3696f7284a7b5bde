"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
from pydantic import ValidationError as SchemaValidationError

from lineage.config import LayoutConfig, LineageConfig, load_config


def test_defaults() -> None:
    config = load_config(None)
    assert config.layout.spacing_x == 220
    assert config.layout.spacing_y == 150
    assert config.layout.width_bound == 800
    assert config.canvas.min_scale == 0.1
    assert config.canvas.max_scale == 4.0
    assert config.persistence.debounce_seconds == 1.0
    assert config.preview.preview_chars == 500


def test_load_from_dict() -> None:
    config = load_config({"layout": {"gap_x": 0}, "preview": {"preview_chars": 10}})
    assert config.layout.spacing_x == 200
    assert config.preview.preview_chars == 10


def test_load_toml_file(tmp_path: Path) -> None:
    path = tmp_path / "lineage.toml"
    path.write_text('[persistence]\nstate_dir = ".state"\ndebounce_seconds = 0.5\n', encoding="utf-8")

    config = load_config(path)

    assert config.persistence.state_dir == ".state"
    assert config.persistence.debounce_seconds == 0.5


def test_load_json_file(tmp_path: Path) -> None:
    path = tmp_path / "lineage.json"
    path.write_text('{"canvas": {"max_scale": 8}}', encoding="utf-8")
    assert load_config(str(path)).canvas.max_scale == 8


def test_unrecognised_suffix_is_read_as_toml(tmp_path: Path) -> None:
    path = tmp_path / "lineage.conf"
    path.write_text("[layout]\ncommit_columns = 3\n", encoding="utf-8")
    assert load_config(path).layout.commit_columns == 3


def test_missing_file_is_reported(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")


def test_unknown_keys_are_rejected() -> None:
    with pytest.raises(SchemaValidationError):
        LineageConfig.from_dict({"layout": {"node_wdith": 10}})


def test_empty_zoom_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        load_config({"canvas": {"min_scale": 5, "max_scale": 1}})


def test_non_positive_node_size_is_rejected() -> None:
    with pytest.raises(SchemaValidationError):
        LayoutConfig(node_width=0)


def test_top_level_must_be_mapping(tmp_path: Path) -> None:
    path = tmp_path / "lineage.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_unsupported_source_type() -> None:
    with pytest.raises(TypeError):
        load_config(42)  # type: ignore[arg-type]
