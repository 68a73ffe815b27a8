# tests/test_frontier.py

import random
import threading

import pytest

from shopcrawl.engines.frontier import Frontier
from shopcrawl.errors import ConfigError, NormalizeError
from shopcrawl.utils.scope import DomainFilter


def make_frontier(**kwargs) -> Frontier:
    return Frontier(DomainFilter("example.com"), **kwargs)


def test_seed_is_depth_zero_and_pre_visited():
    frontier = make_frontier()
    seed = frontier.offer_seed("https://example.com/search?q=shoes")
    assert seed.depth == 0
    assert frontier.size() == 1
    # Offering the seed again, even spelled differently, is a duplicate.
    assert frontier.offer("https://example.com/search?q=shoes", 0) is False
    assert frontier.offer("https://EXAMPLE.com:443/search?q=shoes#top", 3) is False
    assert frontier.stats.duplicate == 2


def test_seed_errors_are_setup_failures():
    with pytest.raises(NormalizeError):
        make_frontier().offer_seed("not a url")
    with pytest.raises(ConfigError):
        make_frontier().offer_seed("https://other.com/")
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/")
    with pytest.raises(RuntimeError):
        frontier.offer_seed("https://example.com/again")


def test_fragment_variant_and_off_domain_links_are_rejected():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/search?q=shoes")
    seed = frontier.next()

    accepted = [
        frontier.offer(link, seed.depth, base=seed.raw_url)
        for link in (
            "https://example.com/item/1",
            "https://example.com/item/1#details",
            "https://other.com/ad",
        )
    ]

    assert accepted == [True, False, False]
    assert frontier.size() == 1
    entry = frontier.next()
    assert entry.raw_url == "https://example.com/item/1"
    assert entry.depth == 1
    assert frontier.stats.duplicate == 1
    assert frontier.stats.out_of_scope == 1


def test_off_domain_rejected_at_any_depth():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/")
    for depth in range(5):
        assert frontier.offer("https://other.com/page", depth) is False


def test_malformed_links_are_dropped_not_raised():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/")
    assert frontier.offer("mailto:help@example.com", 0) is False
    assert frontier.offer("http://[::1", 0) is False
    assert frontier.stats.malformed == 2


def test_relative_links_default_to_seed_base():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/shop/")
    assert frontier.offer("item/7", 0) is True
    frontier.next()
    assert frontier.next().raw_url == "https://example.com/shop/item/7"


def test_next_returns_none_when_empty():
    frontier = make_frontier()
    assert frontier.next() is None
    frontier.offer_seed("https://example.com/")
    assert frontier.next() is not None
    assert frontier.next() is None


def test_complete_rejects_entries_not_in_flight():
    frontier = make_frontier()
    seed = frontier.offer_seed("https://example.com/")
    with pytest.raises(ValueError):
        frontier.complete(seed)
    frontier.next()
    frontier.complete(seed)
    assert frontier.in_flight == 0


def test_depth_barrier_keeps_dequeue_order_monotonic():
    """
    A slow depth-1 page must not let depth-3 work jump ahead of the depth-2
    links it is still going to produce.
    """
    frontier = make_frontier()
    seed = frontier.offer_seed("https://example.com/")
    assert frontier.next() == seed
    frontier.offer("/a", 0)
    frontier.offer("/b", 0)
    frontier.complete(seed)

    a = frontier.next()
    b = frontier.next()
    frontier.offer("/c", b.depth)
    frontier.complete(b)

    # Depth 2 may start while depth 1 is still running.
    c = frontier.next()
    assert c.depth == 2
    frontier.offer("/d", c.depth)
    frontier.complete(c)

    # Depth 3 waits for the slow depth-1 page.
    assert frontier.next() is None
    assert frontier.size() == 1

    frontier.offer("/e", a.depth)
    frontier.complete(a)
    e = frontier.next()
    d = frontier.next()
    assert (e.raw_url, e.depth) == ("https://example.com/e", 2)
    assert (d.raw_url, d.depth) == ("https://example.com/d", 3)


def test_discovery_mode_stops_enqueueing_past_max_depth():
    frontier = make_frontier(max_depth=1)
    frontier.offer_seed("https://example.com/")
    assert frontier.offer("/level1", 0) is True
    assert frontier.offer("/level2", 1) is False
    assert frontier.stats.too_deep == 1
    # A too-deep link is not marked visited.
    assert "https://example.com/level2" not in frontier


def test_dispatch_mode_enqueues_but_withholds_past_max_depth():
    frontier = make_frontier(max_depth=1, depth_limit_mode="dispatch")
    frontier.offer_seed("https://example.com/")
    frontier.next()
    assert frontier.offer("/level1", 0) is True
    level1 = frontier.next()
    assert frontier.offer("/level2", level1.depth) is True
    assert frontier.next() is None
    assert frontier.size() == 1
    assert not frontier.ready()


def test_ready_ignores_the_depth_barrier():
    frontier = make_frontier()
    assert not frontier.ready()
    frontier.offer_seed("https://example.com/")
    seed = frontier.next()
    frontier.offer("/a", 0)
    a = frontier.next()
    frontier.offer("/b", a.depth)
    # /b waits for the seed to complete, but is still dispatchable work.
    assert frontier.next() is None
    assert frontier.ready()
    frontier.complete(seed)
    assert frontier.next().raw_url == "https://example.com/b"


def test_claim_marks_redirect_targets_visited():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/")
    seed = frontier.next()
    frontier.offer("/linked", 0)

    assert frontier.claim(seed, "https://example.com/")
    assert frontier.claim(seed, "https://EXAMPLE.com/landing")
    assert "https://example.com/landing" in frontier
    assert frontier.offer("/landing", 0) is False
    assert frontier.claim(seed, "/linked") is False


def test_unknown_depth_mode_is_rejected():
    with pytest.raises(ConfigError):
        make_frontier(depth_limit_mode="sometimes")


def test_no_url_is_ever_dequeued_twice():
    rng = random.Random(20240611)
    frontier = make_frontier(query_policy="sort")
    frontier.offer_seed("https://example.com/")
    paths = [f"/p/{i}" for i in range(40)] + ["/p/1#x", "/P/1", "/p/2?b=1&a=2", "/p/2?a=2&b=1"]
    dequeued = []
    while True:
        entry = frontier.next()
        if entry is None:
            break
        dequeued.append(entry)
        for _ in range(rng.randint(0, 8)):
            frontier.offer(rng.choice(paths), entry.depth)
        frontier.complete(entry)

    keys = [e.key for e in dequeued]
    assert len(keys) == len(set(keys))
    depths = [e.depth for e in dequeued]
    assert depths == sorted(depths)
    assert frontier.seen == len(keys)


def test_concurrent_offers_accept_each_url_once():
    frontier = make_frontier()
    frontier.offer_seed("https://example.com/")
    results = []
    lock = threading.Lock()

    def worker():
        local = [frontier.offer(f"/item/{i}", 0) for i in range(200)]
        with lock:
            results.extend(local)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(results) == 200
    assert frontier.size() == 201
