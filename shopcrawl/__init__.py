"""Single-domain breadth-first product crawler."""

from .version import __version__

__all__ = ["__version__"]
