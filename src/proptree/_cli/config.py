"""Configuration loading from the ``[tool.proptree]`` table of pyproject.toml.

Example:
    [tool.proptree]
    registry = "myapp.operators:registry"   # or { script = "ops.py", name = "registry" }
    tree = "data/form.json"

"""

import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import cast

from proptree._errors import ProptreeError


class ConfigError(ProptreeError):
    """Invalid ``[tool.proptree]`` configuration."""


@dataclass(slots=True, frozen=True)
class ScriptSource:
    """Python script holding the registry, with an optional variable name."""

    script: Path
    name: str | None = None


@dataclass(slots=True, frozen=True)
class ModuleSource:
    """Importable ``module.path:variable`` holding the registry."""

    module_path: str


RegistrySource = ScriptSource | ModuleSource


@dataclass(slots=True, frozen=True)
class ProptreeConfig:
    """Parsed ``[tool.proptree]`` table.

    Relative paths are resolved against ``project_root``, the directory holding
    pyproject.toml.
    """

    registry: RegistrySource | None = None
    tree: Path | None = None
    project_root: Path | None = None


def find_pyproject_toml(start_dir: Path | None = None) -> Path | None:
    """Walk up from ``start_dir`` (default: the working directory) to the nearest pyproject.toml."""
    directory = (start_dir or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / "pyproject.toml"
        if candidate.is_file():
            return candidate
    return None


def _resolve(path: str, project_root: Path) -> Path:
    resolved = Path(path)
    return resolved if resolved.is_absolute() else project_root / resolved


def parse_registry_source(value: object, project_root: Path) -> RegistrySource:
    """Parse a registry source given as a string or a ``{script, name}`` table.

    Raises:
        ConfigError: If the value has neither form.

    """
    if isinstance(value, str):
        if ":" not in value:
            msg = f"Invalid registry '{value}'. Expected format: 'module.path:variable_name'"
            raise ConfigError(msg)
        return ModuleSource(module_path=value)

    if isinstance(value, dict):
        table = cast("dict[str, object]", value)
        script = table.get("script")
        if not isinstance(script, str):
            msg = "Invalid [tool.proptree].registry.script: expected string path"
            raise ConfigError(msg)
        name = table.get("name")
        if name is not None and not isinstance(name, str):
            msg = "Invalid [tool.proptree].registry.name: expected string"
            raise ConfigError(msg)
        return ScriptSource(script=_resolve(script, project_root), name=name)

    msg = "Invalid [tool.proptree].registry: expected 'module:variable' or a table with a 'script' key"
    raise ConfigError(msg)


def load_config(pyproject_path: Path) -> ProptreeConfig:
    """Load ``[tool.proptree]`` from a pyproject.toml.

    A file without the table yields an empty config.

    Raises:
        ConfigError: If the file is not valid TOML or the table is invalid.

    """
    project_root = pyproject_path.parent
    try:
        with pyproject_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {pyproject_path}: {e}"
        raise ConfigError(msg) from e

    section = data.get("tool", {}).get("proptree", {})
    if not isinstance(section, dict):
        msg = "Invalid [tool.proptree]: expected a table"
        raise ConfigError(msg)

    registry: RegistrySource | None = None
    if "registry" in section:
        registry = parse_registry_source(section["registry"], project_root)

    tree: Path | None = None
    if "tree" in section:
        if not isinstance(section["tree"], str):
            msg = "Invalid [tool.proptree].tree: expected string path"
            raise ConfigError(msg)
        tree = _resolve(section["tree"], project_root)

    return ProptreeConfig(registry=registry, tree=tree, project_root=project_root)


def get_config() -> ProptreeConfig:
    """Load the config of the project containing the working directory, if any."""
    pyproject_path = find_pyproject_toml()
    if pyproject_path is None:
        return ProptreeConfig()
    return load_config(pyproject_path)
