"""Central versioning and schema constants for shopcrawl."""

__all__ = ["__version__", "CONFIG_SCHEMA_VERSION"]

#: Semantic version of this codebase (bump using SemVer).
__version__ = "0.2.0"

#: Configuration schema version (increment if breaking changes to config format).
#: v2 replaced ``start_urls``/``allowed_domains`` with ``seed_url``/``root_domain``.
CONFIG_SCHEMA_VERSION = 2
