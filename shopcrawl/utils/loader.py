from __future__ import annotations

import importlib
from typing import Any

from ..errors import ConfigError


def load_symbol(dotted: str) -> Any:
    """
    Load a class or function from a dotted path.
    Supports both "package.module:ClassName" and "package.module.ClassName".
    """
    if ":" in dotted:
        module_name, symbol_name = dotted.split(":", 1)
    elif "." in dotted:
        module_name, symbol_name = dotted.rsplit(".", 1)
    else:
        raise ConfigError(f"{dotted!r} is not a dotted path (expected module:Name)")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise ConfigError(f"cannot import {module_name!r} for {dotted!r}: {exc}") from exc
    try:
        return getattr(module, symbol_name)
    except AttributeError as exc:
        raise ConfigError(f"{module_name!r} has no attribute {symbol_name!r}") from exc
