# tests/test_scope.py

from shopcrawl.utils.scope import DomainFilter, in_scope
from shopcrawl.utils.urls import normalize


def test_exact_host_only_by_default():
    assert in_scope(normalize("https://example.com/a"), "example.com")
    assert not in_scope(normalize("https://shop.example.com/a"), "example.com")
    assert not in_scope(normalize("https://other.com/ad"), "example.com")


def test_subdomains_when_enabled():
    assert in_scope(normalize("https://shop.example.com/a"), "example.com", include_subdomains=True)
    assert in_scope(normalize("https://example.com/a"), "example.com", include_subdomains=True)
    # Suffix match must fall on a label boundary.
    assert not in_scope(normalize("https://notexample.com/"), "example.com", include_subdomains=True)


def test_filter_cleans_root_domain():
    scope = DomainFilter("Example.COM.")
    assert scope.root_domain == "example.com"
    assert scope(normalize("https://EXAMPLE.com/x"))


def test_empty_root_matches_nothing():
    assert not in_scope(normalize("https://example.com/"), "")
