from __future__ import annotations

from dataclasses import dataclass

from .urls import CanonicalURL


def _clean_domain(domain: str) -> str:
    return domain.strip().lower().rstrip(".")


def in_scope(url: CanonicalURL, root_domain: str, include_subdomains: bool = False) -> bool:
    """
    True if ``url`` belongs to the crawl's domain.

    Exact host match only, unless ``include_subdomains`` also admits any host
    ending in ``.<root_domain>``.
    """
    root = _clean_domain(root_domain)
    if not root:
        return False
    host = url.host
    if host == root:
        return True
    return include_subdomains and host.endswith("." + root)


@dataclass(frozen=True)
class DomainFilter:
    """Scope policy bound to one root domain."""

    root_domain: str
    include_subdomains: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "root_domain", _clean_domain(self.root_domain))

    def __call__(self, url: CanonicalURL) -> bool:
        return in_scope(url, self.root_domain, self.include_subdomains)
