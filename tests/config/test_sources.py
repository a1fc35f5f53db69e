"""Tests for the layered YAML settings source.

- Loading from user and project files
- Merge order between layers
- Missing and malformed files
"""

import pathlib as _pathlib

import pydantic_settings as _pydantic_settings
import pytest as _pytest

import trellis.config as config
import trellis.config.sources as sources


class TestHelperFunctions:
    """Tests for path helper functions."""

    def test_get_user_config_dir_default(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        """Without env var, should return the XDG-style directory."""
        monkeypatch.delenv("TRELLIS_CONFIG_DIR", raising=False)
        assert sources.get_user_config_dir() == _pathlib.Path.home() / ".config" / "trellis"

    def test_get_user_config_path_with_env_var(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        """With env var set, should use that directory."""
        monkeypatch.setenv("TRELLIS_CONFIG_DIR", "/custom/config/dir")
        assert sources.get_user_config_path() == _pathlib.Path("/custom/config/dir/config.yaml")

    def test_get_project_config_path(self) -> None:
        """Should return the project-relative config path."""
        path = sources.get_project_config_path(_pathlib.Path("/some/project"))
        assert path == _pathlib.Path("/some/project/.trellis/config.yaml")


class TestLoadYamlFile:
    """Tests for load_yaml_file."""

    def test_mapping(self, tmp_path: _pathlib.Path) -> None:
        """A YAML mapping is returned as a dict."""
        path = tmp_path / "config.yaml"
        path.write_text("history:\n  limit: 5\n")
        assert sources.load_yaml_file(path) == {"history": {"limit": 5}}

    def test_empty(self, tmp_path: _pathlib.Path) -> None:
        """Empty files give None."""
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert sources.load_yaml_file(path) is None

    def test_not_mapping(self, tmp_path: _pathlib.Path) -> None:
        """A top-level list is rejected."""
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n")
        with _pytest.raises(config.ConfigFileError, match="mapping"):
            sources.load_yaml_file(path)

    def test_invalid_yaml(self, tmp_path: _pathlib.Path) -> None:
        """Malformed YAML raises with the file path in the message."""
        path = tmp_path / "config.yaml"
        path.write_text("key: [unclosed\n")
        with _pytest.raises(config.ConfigFileError) as exc_info:
            sources.load_yaml_file(path)
        assert exc_info.value.path == path
        assert str(path) in str(exc_info.value)

    def test_missing(self, tmp_path: _pathlib.Path) -> None:
        """Unreadable files raise ConfigFileError."""
        with _pytest.raises(config.ConfigFileError, match="cannot read"):
            sources.load_yaml_file(tmp_path / "missing.yaml")


class TestLayeredYamlSettingsSource:
    """Tests for LayeredYamlSettingsSource."""

    def test_is_pydantic_settings_source(self) -> None:
        """Should plug into pydantic-settings."""
        assert issubclass(
            sources.LayeredYamlSettingsSource,
            _pydantic_settings.PydanticBaseSettingsSource,
        )

    def _source(
        self, tmp_path: _pathlib.Path, user: str | None, project: str | None
    ) -> sources.LayeredYamlSettingsSource:
        user_path = tmp_path / "user" / "config.yaml"
        project_root = tmp_path / "project"
        if user is not None:
            user_path.parent.mkdir(parents=True)
            user_path.write_text(user)
        if project is not None:
            (project_root / ".trellis").mkdir(parents=True)
            (project_root / ".trellis" / "config.yaml").write_text(project)
        return sources.LayeredYamlSettingsSource(
            config.Settings, project_root, user_config_path=user_path
        )

    def test_no_files(self, tmp_path: _pathlib.Path) -> None:
        """Missing files are skipped."""
        source = self._source(tmp_path, None, None)
        assert source() == {}
        assert source.get_loaded_layers() == []

    def test_project_wins(self, tmp_path: _pathlib.Path) -> None:
        """Project values override user values; sections merge."""
        source = self._source(
            tmp_path,
            "history:\n  limit: 10\nlogging:\n  level: debug\n",
            "history:\n  limit: 20\n",
        )
        assert source() == {"history": {"limit": 20}, "logging": {"level": "debug"}}
        assert [name for name, _path in source.get_loaded_layers()] == ["project", "user"]

    def test_layer_paths(self, tmp_path: _pathlib.Path) -> None:
        """Layer paths are listed highest precedence first."""
        source = self._source(tmp_path, None, None)
        names = [name for name, _path in source.get_layer_paths()]
        assert names == ["project", "user"]

    def test_get_field_value(self, tmp_path: _pathlib.Path) -> None:
        """Field lookups report whether the value is complex."""
        source = self._source(tmp_path, "history:\n  limit: 10\nowner: docs\n", None)
        field = config.Settings.model_fields["history"]
        assert source.get_field_value(field, "history") == ({"limit": 10}, "history", True)
        assert source.get_field_value(field, "owner") == ("docs", "owner", False)
