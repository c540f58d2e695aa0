"""Unit tests for the ranking configuration loader."""

import tempfile
from collections.abc import Generator
from pathlib import Path

import pytest

from branchfeed.config.loader import (
    ConfigValidationError,
    RankingConfigLoader,
    load_ranking_config,
)
from branchfeed.config.schemas import RankingConfig


@pytest.fixture
def config_dir() -> Generator[Path]:
    """Create a temporary directory for config files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


def _write(directory: Path, content: str) -> Path:
    path = directory / "ranking.yaml"
    path.write_text(content, encoding="utf-8")
    return path


class TestRankingConfigLoader:
    """Tests for RankingConfigLoader."""

    def test_none_returns_defaults(self) -> None:
        """Test no path yields the built-in defaults."""
        config = load_ranking_config(None)
        assert config == RankingConfig()
        assert config.follow_scoring.mutual_base_score == 100
        assert config.story_scoring.popular_likes_weight == 0.2

    def test_partial_override(self, config_dir: Path) -> None:
        """Test values in the file override defaults, others keep them."""
        path = _write(
            config_dir,
            """
follow_scoring:
  per_mutual_weight: 25
default_limit: 5
""",
        )
        loader = RankingConfigLoader()

        config = loader.load(path)

        assert config.follow_scoring.per_mutual_weight == 25
        assert config.follow_scoring.mutual_base_score == 100
        assert config.default_limit == 5
        assert loader.checksum is not None
        assert len(loader.checksum) == 64
        assert loader.validation_errors == []

    def test_empty_file_is_defaults(self, config_dir: Path) -> None:
        """Test an empty document yields defaults."""
        assert load_ranking_config(_write(config_dir, "")) == RankingConfig()

    def test_missing_file(self, config_dir: Path) -> None:
        """Test a missing file is a validation error, not a crash."""
        with pytest.raises(ConfigValidationError) as exc_info:
            load_ranking_config(config_dir / "absent.yaml")
        assert exc_info.value.errors[0]["type"] == "file_not_found"

    def test_yaml_syntax_error(self, config_dir: Path) -> None:
        """Test malformed YAML is reported."""
        path = _write(config_dir, "follow_scoring: [unclosed\n")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_ranking_config(path)
        assert exc_info.value.errors[0]["type"] == "yaml_error"

    def test_non_mapping_document(self, config_dir: Path) -> None:
        """Test a top-level list is rejected."""
        path = _write(config_dir, "- 1\n- 2\n")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_ranking_config(path)
        assert exc_info.value.errors[0]["type"] == "type_error"

    def test_schema_errors_collected(self, config_dir: Path) -> None:
        """Test every schema violation is reported with its location."""
        path = _write(
            config_dir,
            """
follow_scoring:
  per_mutual_weight: -1
unknown_key: true
""",
        )
        loader = RankingConfigLoader()

        with pytest.raises(ConfigValidationError) as exc_info:
            loader.load(path)

        locations = {e["loc"] for e in exc_info.value.errors}
        assert "follow_scoring.per_mutual_weight" in locations
        assert "unknown_key" in locations
        assert exc_info.value.file_path == str(path)
        assert loader.validation_errors == exc_info.value.errors

    def test_limit_consistency(self, config_dir: Path) -> None:
        """Test default_limit may not exceed max_limit."""
        path = _write(config_dir, "default_limit: 50\nmax_limit: 20\n")
        with pytest.raises(ConfigValidationError) as exc_info:
            load_ranking_config(path)
        assert "default_limit" in exc_info.value.errors[0]["msg"]
