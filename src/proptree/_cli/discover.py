"""Locate and import the operator registry of a project.

Module path computation follows `fastapi_cli.discover` of package `fastapi-cli`.
"""

from __future__ import annotations

import importlib
import logging
import sys
from dataclasses import dataclass
from typing import TYPE_CHECKING

from proptree._registry import Registry

from .config import ModuleSource, ScriptSource

if TYPE_CHECKING:
    from pathlib import Path
    from types import ModuleType

    from .config import RegistrySource

logger = logging.getLogger(__name__)


@dataclass
class ModuleData:
    """How to import a Python file: its dotted name and the sys.path entry it needs."""

    module_import_str: str
    extra_sys_path: Path
    module_paths: list[Path]


def get_module_data_from_path(path: Path) -> ModuleData:
    """Compute the import name of a file, climbing through enclosing packages."""
    module_path = path.resolve()
    if module_path.is_file() and module_path.stem == "__init__":
        module_path = module_path.parent
    module_paths = [module_path]
    for parent in module_path.parents:
        if not (parent / "__init__.py").is_file():
            break
        module_paths.insert(0, parent)
    return ModuleData(
        module_import_str=".".join(p.stem for p in module_paths),
        extra_sys_path=module_paths[0].parent.resolve(),
        module_paths=module_paths,
    )


def as_registry(obj: object, where: str) -> Registry:
    """Accept a `Registry` or a zero-argument factory returning one.

    Raises:
        TypeError: If ``obj`` is neither.

    """
    if isinstance(obj, Registry):
        return obj
    if callable(obj) and not isinstance(obj, type):
        produced = obj()
        if isinstance(produced, Registry):
            return produced
        msg = f"{where} returned {type(produced).__name__}, expected a Registry"
        raise TypeError(msg)
    msg = f"{where} is not a Registry or a function returning one"
    raise TypeError(msg)


def _pick_registry(module: ModuleType, name: str | None) -> Registry:
    if name:
        if not hasattr(module, name):
            msg = f"Could not find registry '{name}' in {module.__name__}"
            raise ValueError(msg)
        return as_registry(getattr(module, name), f"'{name}' in {module.__name__}")

    for attr in dir(module):
        obj = getattr(module, attr)
        if isinstance(obj, Registry):
            logger.debug("Found registry: %s", attr)
            return obj

    msg = f"Could not find a Registry in {module.__name__}, name it explicitly"
    raise ValueError(msg)


def load_registry_from_script(script_path: Path, name: str | None = None) -> Registry:
    """Import a script and return its registry.

    Without ``name`` the first module-level `Registry` instance is used.

    Raises:
        ImportError: If the script cannot be imported.
        ValueError: If no registry is found.
        TypeError: If the named variable is not a registry.

    """
    module_data = get_module_data_from_path(script_path)
    sys.path.insert(0, str(module_data.extra_sys_path))
    try:
        module = importlib.import_module(module_data.module_import_str)
    except (ImportError, ValueError):
        logger.exception("Import error")
        logger.warning("Ensure all the package directories have an __init__.py file")
        raise
    return _pick_registry(module, name)


def load_registry_from_module_path(module_path: str) -> Registry:
    """Import ``module.path:variable`` and return the registry it names."""
    module_name, sep, name = module_path.partition(":")
    if not sep or not name:
        msg = "Module path must be in format 'module.path:variable_name'"
        raise ValueError(msg)
    return _pick_registry(importlib.import_module(module_name), name)


def load_registry_from_source(source: RegistrySource) -> Registry:
    match source:
        case ScriptSource(script=script, name=name):
            return load_registry_from_script(script, name)
        case ModuleSource(module_path=module_path):
            return load_registry_from_module_path(module_path)
