"""Tests for the configuration module."""

from pathlib import Path

import pytest

from proptree._cli.config import (
    ConfigError,
    ModuleSource,
    ProptreeConfig,
    ScriptSource,
    find_pyproject_toml,
    get_config,
    load_config,
    parse_registry_source,
)


def write_pyproject(directory: Path, body: str) -> Path:
    pyproject = directory / "pyproject.toml"
    pyproject.write_text(body)
    return pyproject


class TestFindPyprojectToml:
    """Tests for find_pyproject_toml function."""

    def test_finds_in_current_directory(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(tmp_path, "[project]\nname = 'test'\n")

        assert find_pyproject_toml(tmp_path) == pyproject.resolve()

    def test_finds_in_parent_directory(self, tmp_path: Path) -> None:
        """Should walk up from a nested directory."""
        pyproject = write_pyproject(tmp_path, "[project]\nname = 'test'\n")
        subdir = tmp_path / "src" / "pkg"
        subdir.mkdir(parents=True)

        assert find_pyproject_toml(subdir) == pyproject.resolve()

    def test_ignores_directories_named_like_the_file(self, tmp_path: Path) -> None:
        (tmp_path / "inner" / "pyproject.toml").mkdir(parents=True)

        assert find_pyproject_toml(tmp_path / "inner") != tmp_path / "inner" / "pyproject.toml"


class TestLoadConfigModulePath:
    """Tests for the ``module:variable`` registry form."""

    def test_module_path_string(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree]
registry = "myapp.operators:registry"
""",
        )

        config = load_config(pyproject)

        assert config.registry == ModuleSource(module_path="myapp.operators:registry")
        assert config.project_root == tmp_path

    def test_module_path_without_colon_raises_error(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree]
registry = "myapp.operators"
""",
        )

        with pytest.raises(ConfigError, match="Expected format: 'module.path:variable_name'"):
            load_config(pyproject)


class TestLoadConfigScriptPath:
    """Tests for the ``{script, name}`` registry form."""

    def test_script_with_name(self, tmp_path: Path) -> None:
        """Should resolve the script relative to the project root."""
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree]
registry = { script = "ops.py", name = "registry" }
""",
        )

        config = load_config(pyproject)

        assert config.registry == ScriptSource(script=tmp_path / "ops.py", name="registry")

    def test_script_without_name(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree.registry]
script = "tools/ops.py"
""",
        )

        config = load_config(pyproject)

        assert config.registry == ScriptSource(script=tmp_path / "tools" / "ops.py")

    def test_absolute_script_path_is_kept(self, tmp_path: Path) -> None:
        script = tmp_path / "elsewhere" / "ops.py"

        assert parse_registry_source({"script": str(script)}, tmp_path / "project") == ScriptSource(script=script)

    def test_missing_script_raises_error(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree.registry]
name = "registry"
""",
        )

        with pytest.raises(ConfigError, match=r"registry\.script: expected string path"):
            load_config(pyproject)

    def test_non_string_name_raises_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match=r"registry\.name: expected string"):
            parse_registry_source({"script": "ops.py", "name": 3}, tmp_path)

    def test_other_types_raise_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="expected 'module:variable' or a table"):
            parse_registry_source(42, tmp_path)


class TestLoadConfigTree:
    def test_tree_path_is_resolved(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree]
tree = "data/form.json"
""",
        )

        config = load_config(pyproject)

        assert config.tree == tmp_path / "data" / "form.json"
        assert config.registry is None

    def test_non_string_tree_raises_error(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(
            tmp_path,
            """
[tool.proptree]
tree = 1
""",
        )

        with pytest.raises(ConfigError, match=r"tree: expected string path"):
            load_config(pyproject)


class TestLoadConfigErrors:
    def test_missing_section_gives_empty_config(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(tmp_path, "[project]\nname = 'test'\n")

        assert load_config(pyproject) == ProptreeConfig(project_root=tmp_path)

    def test_invalid_toml(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(tmp_path, "[tool.proptree\n")

        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(pyproject)

    def test_section_must_be_a_table(self, tmp_path: Path) -> None:
        pyproject = write_pyproject(tmp_path, "[tool]\nproptree = 3\n")

        with pytest.raises(ConfigError, match="expected a table"):
            load_config(pyproject)


class TestGetConfig:
    def test_reads_config_of_working_directory(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_pyproject(tmp_path, '[tool.proptree]\ntree = "form.json"\n')
        monkeypatch.chdir(tmp_path)

        config = get_config()

        assert config.tree is not None
        assert config.tree.name == "form.json"
