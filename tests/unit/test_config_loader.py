"""
Unit tests for ConfigLoader and CouncilConfig.
"""
import json
import pytest

from agent_council.core.config_loader import ConfigLoader, CouncilConfig, MAX_CONFIG_SIZE, normalize_path
from agent_council.core.exceptions import SecurityError, ValidationError


class TestCouncilConfig:
    """Test configuration defaults and validation."""

    def test_defaults(self):
        config = CouncilConfig()

        assert config.session_timeout == 600.0
        assert config.cache_ttl == 60.0
        assert config.history_limit == 1000
        assert config.refinement_threshold == 0.8
        assert config.evaluation_weights is None

    def test_from_dict(self):
        config = CouncilConfig.from_dict({"session_timeout": 30, "max_depth": 5})

        assert config.session_timeout == 30
        assert config.max_depth == 5

    def test_ensemble_refinement_flag(self):
        assert CouncilConfig().ensemble_refinement is False
        assert CouncilConfig.from_dict({"ensemble_refinement": True}).ensemble_refinement is True

        with pytest.raises(ValidationError):
            CouncilConfig.from_dict({"ensemble_refinement": "yes"})

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            CouncilConfig.from_dict({"session_timeot": 30})

    def test_invalid_value_rejected(self):
        """Test that schema violations name the offending field."""
        with pytest.raises(ValidationError) as exc_info:
            CouncilConfig.from_dict({"refinement_threshold": 1.5})

        assert exc_info.value.field == "refinement_threshold"

    def test_to_dict_omits_council_dir(self):
        assert "council_dir" not in CouncilConfig().to_dict()


class TestConfigLoader:
    """Test loading configuration files from the workspace."""

    def test_defaults_without_file(self, temp_workspace):
        config = ConfigLoader(temp_workspace).load()

        assert config == CouncilConfig()

    def test_load_yaml(self, temp_workspace):
        (temp_workspace / ".council" / "config.yaml").write_text(
            "session_timeout: 5\nhistory_limit: 10\n", encoding="utf-8"
        )

        config = ConfigLoader(temp_workspace).load()

        assert config.session_timeout == 5
        assert config.history_limit == 10

    def test_load_json(self, temp_workspace):
        (temp_workspace / ".council" / "config.json").write_text(
            json.dumps({"cache_ttl": 1}), encoding="utf-8"
        )

        assert ConfigLoader(temp_workspace).load().cache_ttl == 1

    def test_empty_file_gives_defaults(self, temp_workspace):
        (temp_workspace / ".council" / "config.yaml").write_text("", encoding="utf-8")

        assert ConfigLoader(temp_workspace).load() == CouncilConfig()

    def test_invalid_yaml_raises(self, temp_workspace):
        (temp_workspace / ".council" / "config.yaml").write_text("a: [unclosed", encoding="utf-8")

        with pytest.raises(ValidationError):
            ConfigLoader(temp_workspace).load()

    def test_non_mapping_root_raises(self, temp_workspace):
        (temp_workspace / ".council" / "config.yaml").write_text("- 1\n- 2\n", encoding="utf-8")

        with pytest.raises(ValidationError):
            ConfigLoader(temp_workspace).load()

    def test_oversized_file_raises(self, temp_workspace):
        (temp_workspace / ".council" / "config.yaml").write_text(
            "#" * (MAX_CONFIG_SIZE + 1), encoding="utf-8"
        )

        with pytest.raises(SecurityError):
            ConfigLoader(temp_workspace).load()

    def test_cached_until_modified(self, temp_workspace):
        """Test that the same object is returned while the file is unchanged."""
        (temp_workspace / ".council" / "config.yaml").write_text("max_depth: 3\n", encoding="utf-8")
        loader = ConfigLoader(temp_workspace)

        assert loader.load() is loader.load()

        loader.clear_cache()
        assert loader.load().max_depth == 3

    def test_relative_config_outside_workspace_rejected(self, temp_workspace):
        with pytest.raises(SecurityError):
            ConfigLoader(temp_workspace).load("../elsewhere/config.yaml")

    def test_missing_explicit_file_raises(self, temp_workspace):
        with pytest.raises(ValidationError):
            ConfigLoader(temp_workspace).load(temp_workspace / "nope.yaml")

    def test_resolve_inside_council_dir(self, temp_workspace):
        loader = ConfigLoader(temp_workspace)

        assert loader.resolve("events.json") == (temp_workspace / ".council" / "events.json").resolve()


class TestNormalizePath:
    """Test path traversal protection."""

    def test_path_inside_base(self, temp_workspace):
        assert normalize_path(temp_workspace, "a/b.txt") == (temp_workspace / "a" / "b.txt").resolve()

    def test_traversal_rejected(self, temp_workspace):
        with pytest.raises(SecurityError):
            normalize_path(temp_workspace, "../../etc/passwd")
