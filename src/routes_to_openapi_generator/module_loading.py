"""Helpers for loading the user's route declarations."""

from __future__ import annotations

import importlib
import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any


class AppLoadError(RuntimeError):
    """Raised when an ``--app`` reference cannot be loaded."""


def load_module_from_path(*, module_name: str, module_path: Path) -> ModuleType:
    """Load a module from file path and register it in ``sys.modules``.

    Args:
        module_name (str): Import name for the module.
        module_path (Path): File system path to the Python module.

    Returns:
        ModuleType: Imported Python module object.
    """
    spec = importlib.util.spec_from_file_location(module_name, module_path)
    if spec is None or spec.loader is None:
        raise AppLoadError(f"Unable to import module from: {module_path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        sys.modules.pop(module_name, None)
        raise
    return module


def load_object(reference: str) -> Any:
    """Load ``module.path:attribute`` or ``path/to/file.py:attribute``.

    Args:
        reference (str): Import reference; the attribute may be dotted.

    Returns:
        Any: The referenced object.
    """
    target, separator, attribute = reference.rpartition(":")
    if not separator or not target or not attribute:
        raise AppLoadError(f"App reference {reference!r} must look like 'module:attribute'")

    if target.endswith(".py"):
        module_path = Path(target)
        if not module_path.is_file():
            raise AppLoadError(f"App module file not found: {module_path}")
        module = load_module_from_path(module_name=module_path.stem, module_path=module_path)
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as exc:
            raise AppLoadError(f"Unable to import module {target!r}: {exc}") from exc

    value: Any = module
    for part in attribute.split("."):
        try:
            value = getattr(value, part)
        except AttributeError as exc:
            raise AppLoadError(f"{target!r} has no attribute {attribute!r}") from exc
    return value
