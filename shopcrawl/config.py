from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any
from pathlib import Path
from urllib.parse import urlsplit
import os
import json

from .errors import ConfigError, NormalizeError
from .utils.scope import in_scope
from .utils.urls import normalize
from .version import __version__, CONFIG_SCHEMA_VERSION

DEPTH_LIMIT_MODES = ("discovery", "dispatch")
QUERY_POLICIES = ("keep", "sort")


@dataclass
class CrawlConfig:
    """
    Canonical configuration object passed throughout the system.
    Keep it dataclass-only (no heavy deps) to stay upgrade-friendly.
    """
    schema_version: int = CONFIG_SCHEMA_VERSION
    seed_url: str = ""
    # Defaults to the seed's host when left empty.
    root_domain: Optional[str] = None
    include_subdomains: bool = False
    max_depth: Optional[int] = None
    # None (or 0 from the CLI) means unlimited.
    max_pages: Optional[int] = 20
    max_concurrency: int = 4
    request_timeout: float = 15.0
    # Responses larger than this are abandoned instead of buffered.
    max_body_bytes: int = 10 * 1024 * 1024
    retries: int = 2
    backoff_base: float = 0.5
    backoff_max: float = 5.0
    user_agent: str = f"shopcrawl/{__version__}"
    # "discovery": never enqueue past max_depth; "dispatch": enqueue but never fetch.
    depth_limit_mode: str = "discovery"
    query_policy: str = "keep"
    drop_query_params: List[str] = field(default_factory=list)
    # Seconds in-flight pages get to finish once dispatching stops.
    grace_period: float = 10.0
    # Dotted path for the sink to allow runtime swapping without code changes.
    sink: str = "shopcrawl.export.csv_exporter:CSVSink"
    # Extra adapters (dotted class paths) to register at startup
    extra_adapters: List[str] = field(default_factory=list)
    output_path: str = "products.csv"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def effective_root_domain(self) -> str:
        if self.root_domain:
            return self.root_domain.strip().lower().rstrip(".")
        return (urlsplit(self.seed_url.strip()).hostname or "").rstrip(".")

    # ---------- Loaders ----------

    @classmethod
    def from_env(cls) -> "CrawlConfig":
        """
        Build config from environment variables (all optional).
        """
        def _get(name: str, default: str) -> str:
            return os.getenv(name, default)

        def _opt_int(name: str, default: Optional[int]) -> Optional[int]:
            raw = os.getenv(name)
            if raw is None or not raw.strip():
                return default
            try:
                return int(raw)
            except ValueError as exc:
                raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc

        try:
            return cls(
                seed_url=_get("SHOPCRAWL_SEED_URL", ""),
                root_domain=_get("SHOPCRAWL_ROOT_DOMAIN", "") or None,
                include_subdomains=_get("SHOPCRAWL_INCLUDE_SUBDOMAINS", "").lower() in ("1", "true", "yes"),
                max_depth=_opt_int("SHOPCRAWL_MAX_DEPTH", None),
                max_pages=_opt_int("SHOPCRAWL_MAX_PAGES", 20),
                max_concurrency=int(_get("SHOPCRAWL_MAX_CONCURRENCY", "4")),
                request_timeout=float(_get("SHOPCRAWL_REQUEST_TIMEOUT", "15.0")),
                max_body_bytes=int(_get("SHOPCRAWL_MAX_BODY_BYTES", str(10 * 1024 * 1024))),
                retries=int(_get("SHOPCRAWL_RETRIES", "2")),
                user_agent=_get("SHOPCRAWL_USER_AGENT", f"shopcrawl/{__version__}"),
                depth_limit_mode=_get("SHOPCRAWL_DEPTH_LIMIT_MODE", "discovery"),
                query_policy=_get("SHOPCRAWL_QUERY_POLICY", "keep"),
                drop_query_params=[p.strip() for p in _get("SHOPCRAWL_DROP_QUERY_PARAMS", "").split(",") if p.strip()],
                sink=_get("SHOPCRAWL_SINK", "shopcrawl.export.csv_exporter:CSVSink"),
                extra_adapters=[a.strip() for a in _get("SHOPCRAWL_EXTRA_ADAPTERS", "").split(",") if a.strip()],
                output_path=_get("SHOPCRAWL_OUTPUT_PATH", "products.csv"),
            )
        except ValueError as exc:
            if isinstance(exc, ConfigError):
                raise
            raise ConfigError(f"invalid environment configuration: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | os.PathLike[str]) -> "CrawlConfig":
        """
        Load configuration from a JSON file. Supports schema migration for older versions.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        data = migrate_config(data)
        try:
            return cls(**data)
        except TypeError as exc:
            raise ConfigError(f"unknown or malformed config keys in {path}: {exc}") from exc

    # ---------- Validation ----------

    def validate(self) -> None:
        if not self.seed_url or not self.seed_url.strip():
            raise ConfigError("seed_url cannot be empty; provide a start URL.")
        try:
            seed = normalize(self.seed_url)
        except NormalizeError as exc:
            raise ConfigError(f"invalid seed URL: {exc}") from exc
        if not in_scope(seed, self.effective_root_domain, self.include_subdomains):
            raise ConfigError(f"seed {self.seed_url!r} is outside root domain {self.effective_root_domain!r}")
        if self.max_depth is not None and self.max_depth < 0:
            raise ConfigError("max_depth must be >= 0")
        if self.max_pages is not None and self.max_pages < 0:
            raise ConfigError("max_pages must be >= 0")
        if self.max_concurrency <= 0:
            raise ConfigError("max_concurrency must be > 0")
        if self.retries < 0:
            raise ConfigError("retries must be >= 0")
        if self.request_timeout <= 0:
            raise ConfigError("request_timeout must be > 0")
        if self.max_body_bytes <= 0:
            raise ConfigError("max_body_bytes must be > 0")
        if self.depth_limit_mode not in DEPTH_LIMIT_MODES:
            raise ConfigError(f"depth_limit_mode must be one of {DEPTH_LIMIT_MODES}")
        if self.query_policy not in QUERY_POLICIES:
            raise ConfigError(f"query_policy must be one of {QUERY_POLICIES}")
        # Validate output path parent exists or is creatable
        parent = Path(self.output_path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ConfigError(f"output directory {parent} is not writable: {exc}") from exc


def migrate_config(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Migrate config dict to the latest schema version.
    Keep this pure and additive. Add migrations here as you bump schema.
    """
    raw = dict(raw)
    schema = raw.get("schema_version", 1)

    if schema == 1:
        # v1 crawled a list of start URLs restricted to a list of domains.
        start_urls = raw.pop("start_urls", None) or []
        if start_urls and "seed_url" not in raw:
            raw["seed_url"] = start_urls[0]
        allowed = raw.pop("allowed_domains", None) or []
        if allowed and "root_domain" not in raw:
            raw["root_domain"] = allowed[0]
        # v1 engines/exporters were batch-oriented and have no streaming equivalent.
        raw.pop("engine", None)
        raw.pop("exporter", None)
        raw["schema_version"] = 2

    raw.setdefault("schema_version", CONFIG_SCHEMA_VERSION)
    return raw
