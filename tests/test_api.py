# tests/test_api.py

from unittest.mock import AsyncMock, patch

import pytest

pytest.importorskip("fastapi")
from fastapi.testclient import TestClient  # noqa: E402

from shopcrawl.apis.app import app  # noqa: E402
from shopcrawl.engines.base import CrawlReport  # noqa: E402


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def out_dir(tmp_path, monkeypatch):
    directory = tmp_path / "out"
    monkeypatch.setenv("SHOPCRAWL_API_OUTPUT_DIR", str(directory))
    return directory


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_crawl_returns_summary(client, out_dir):
    report = CrawlReport(pages_fetched=4, products_extracted=7, stop_reason="max_pages")
    with patch("shopcrawl.apis.app.run_crawl", AsyncMock(return_value=report)) as run:
        response = client.post("/crawl", json={
            "seed_url": "https://example.com/",
            "max_pages": 4,
            "query_policy": "sort",
            "output_path": "api.csv",
        })

    assert response.status_code == 200
    body = response.json()
    output = (out_dir / "api.csv").resolve()
    assert body["pages_fetched"] == 4
    assert body["products_extracted"] == 7
    assert body["stop_reason"] == "max_pages"
    assert body["output_path"] == str(output)
    cfg = run.call_args.args[0]
    assert cfg.max_pages == 4
    assert cfg.query_policy == "sort"
    assert output.exists()


def test_crawl_defaults_output_into_output_dir(client, out_dir):
    with patch("shopcrawl.apis.app.run_crawl", AsyncMock(return_value=CrawlReport())):
        response = client.post("/crawl", json={"seed_url": "https://example.com/"})

    assert response.status_code == 200
    assert response.json()["output_path"] == str((out_dir / "products.csv").resolve())


@pytest.mark.parametrize("escape", ["absolute", "../elsewhere/important.txt"])
def test_crawl_refuses_output_outside_output_dir(client, out_dir, tmp_path, escape):
    victim = tmp_path / "elsewhere" / "important.txt"
    victim.parent.mkdir()
    victim.write_text("keep me\n")
    output_path = str(victim) if escape == "absolute" else escape

    with patch("shopcrawl.apis.app.run_crawl", AsyncMock(return_value=CrawlReport())) as run:
        response = client.post("/crawl", json={
            "seed_url": "https://example.com/",
            "output_path": output_path,
        })

    assert response.status_code == 422
    assert victim.read_text() == "keep me\n"
    run.assert_not_called()


def test_crawl_rejects_bad_seed(client, out_dir):
    response = client.post("/crawl", json={
        "seed_url": "javascript:alert(1)",
        "output_path": "x.csv",
    })
    assert response.status_code == 422
