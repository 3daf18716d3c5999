"""Tests for verbosity presets, deep merge and config loading."""

import pytest
from pydantic import ValidationError

from session_handoff.config import (
    PRESETS,
    UnknownPresetError,
    VerbosityConfig,
    deep_merge,
    get_preset,
    load_config,
    merge_config,
    parse_user_config,
    preset_names,
    resolve_config,
)


class TestPresets:
    """Tests for the built-in presets."""

    def test_preset_names(self):
        assert preset_names() == ["minimal", "standard", "verbose", "full"]

    @pytest.mark.parametrize("name", list(PRESETS))
    def test_every_preset_validates(self, name):
        config = get_preset(name)
        assert isinstance(config, VerbosityConfig)
        assert config.preset == name

    def test_presets_grow_monotonically(self):
        minimal, standard, verbose, full = (get_preset(n) for n in preset_names())
        assert minimal.shell.max_samples < standard.shell.max_samples < verbose.shell.max_samples < full.shell.max_samples
        assert minimal.recent_messages < standard.recent_messages < verbose.recent_messages < full.recent_messages

    def test_get_preset_returns_fresh_copy(self):
        first = get_preset("standard")
        first.shell.max_samples = 99
        assert get_preset("standard").shell.max_samples == 8

    def test_unknown_preset_raises(self):
        with pytest.raises(UnknownPresetError, match="Valid presets"):
            get_preset("chatty")

    def test_unknown_preset_is_value_error(self):
        assert issubclass(UnknownPresetError, ValueError)


class TestDeepMerge:
    """Tests for deep_merge and merge_config."""

    def test_nested_dicts_merge(self):
        base = {"a": {"x": 1, "y": 2}, "b": 3}
        assert deep_merge(base, {"a": {"y": 5}}) == {"a": {"x": 1, "y": 5}, "b": 3}

    def test_lists_and_scalars_replace(self):
        base = {"items": [1, 2, 3], "n": 1}
        assert deep_merge(base, {"items": [9], "n": 2}) == {"items": [9], "n": 2}

    def test_base_not_mutated(self):
        base = {"a": {"x": 1}}
        deep_merge(base, {"a": {"x": 2}})
        assert base == {"a": {"x": 1}}

    @pytest.mark.parametrize("name", list(PRESETS))
    def test_empty_override_is_identity(self, name):
        preset = get_preset(name)
        assert merge_config(preset, {}) == preset

    def test_single_leaf_override(self):
        standard = get_preset("standard")
        merged = merge_config(standard, {"shell": {"max_samples": 1}})

        assert merged.shell.max_samples == 1
        assert merged.shell.stdout_lines == standard.shell.stdout_lines
        assert merged.shell.show_exit_code == standard.shell.show_exit_code
        assert merged.model_dump(exclude={"shell"}) == standard.model_dump(exclude={"shell"})

    def test_merge_rejects_unknown_keys(self):
        with pytest.raises(ValidationError):
            merge_config(get_preset("standard"), {"shell": {"max_sample": 1}})


class TestResolveConfig:
    """Tests for resolve_config fallbacks."""

    def test_defaults_to_standard(self):
        assert resolve_config() == get_preset("standard")

    def test_explicit_preset(self):
        assert resolve_config(preset="verbose") == get_preset("verbose")

    def test_preset_key_in_overrides(self):
        config = resolve_config({"preset": "minimal", "recent_messages": 7})
        assert config.recent_messages == 7
        assert config.shell.max_samples == get_preset("minimal").shell.max_samples

    def test_negative_cap_falls_back_to_base(self, caplog):
        config = resolve_config({"shell": {"max_samples": -1}})
        assert config == get_preset("standard")
        assert "falling back" in caplog.text

    def test_negative_cap_never_survives(self):
        config = resolve_config({"grep": {"max_chars": -5}}, preset="verbose")
        assert config.grep.max_chars >= 0
        assert config == get_preset("verbose")

    def test_wrong_type_falls_back(self):
        assert resolve_config({"thinking": {"include": "yes"}}) == get_preset("standard")

    @pytest.mark.parametrize("overrides", [["not", "a", "mapping"], "shell", 3])
    def test_non_mapping_overrides_fall_back(self, overrides, caplog):
        assert resolve_config(overrides) == get_preset("standard")
        assert resolve_config(overrides, preset="minimal") == get_preset("minimal")
        assert "must be a mapping" in caplog.text

    def test_unknown_explicit_preset_raises(self):
        with pytest.raises(UnknownPresetError):
            resolve_config({}, preset="nope")


class TestLoadConfig:
    """Tests for YAML config loading."""

    def test_parse_user_config_non_mapping(self):
        assert parse_user_config(["not", "a", "mapping"]) == get_preset("standard")

    def test_explicit_path(self, tmp_path):
        path = tmp_path / "handoff.yml"
        path.write_text("preset: verbose\nshell:\n  max_samples: 2\n")

        config = load_config(path)

        assert config.preset == "verbose"
        assert config.shell.max_samples == 2
        assert config.read.max_samples == get_preset("verbose").read.max_samples

    def test_project_file_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".session-handoff.yml").write_text("recent_messages: 4\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("session_handoff.config.USER_CONFIG_PATH", tmp_path / "missing.yml")

        assert load_config().recent_messages == 4

    def test_invalid_yaml_is_skipped(self, tmp_path, monkeypatch):
        path = tmp_path / "broken.yml"
        path.write_text("shell: [unclosed\n")
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("session_handoff.config.USER_CONFIG_PATH", tmp_path / "missing.yml")

        assert load_config(path) == get_preset("standard")

    def test_no_files_gives_standard(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setattr("session_handoff.config.USER_CONFIG_PATH", tmp_path / "missing.yml")

        assert load_config() == get_preset("standard")
