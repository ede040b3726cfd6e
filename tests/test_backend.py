import json
from pathlib import Path

import pytest

from backend.main import create_app, load_fixture


@pytest.fixture
def source_client(tmp_path: Path, nairobi_document):
    path = tmp_path / "db.json"
    path.write_text(json.dumps(nairobi_document), encoding="utf-8")
    app = create_app(str(path))
    app.config["TESTING"] = True
    return app.test_client()


def test_db_serves_the_whole_document(source_client, nairobi_document):
    response = source_client.get("/db")
    assert response.status_code == 200
    assert response.get_json() == nairobi_document
    assert response.headers["Access-Control-Allow-Origin"] == "*"


def test_parking_spots_list_and_item(source_client):
    spots = source_client.get("/parkingSpots").get_json()
    assert len(spots) == 5

    assert source_client.get("/parkingSpots/2").get_json()["name"] == "Sarit Centre Garage"
    assert source_client.get("/parkingSpots/99").status_code == 404


def test_missing_fixture_serves_an_empty_collection(tmp_path: Path):
    assert load_fixture(str(tmp_path / "nope.json")) == {"parkingSpots": []}


def test_malformed_fixture_is_rejected(tmp_path: Path):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps({"spots": []}), encoding="utf-8")
    with pytest.raises(ValueError):
        load_fixture(str(path))


def test_document_feeds_the_http_source(monkeypatch, source_client):
    from parkfinder import data_loader
    from parkfinder.data_loader import HttpSpotSource, parse_document

    class _Response:
        def __init__(self, flask_response):
            self._r = flask_response

        def raise_for_status(self):
            assert self._r.status_code == 200

        def json(self):
            return self._r.get_json()

    monkeypatch.setattr(
        data_loader.requests, "get", lambda url, **kwargs: _Response(source_client.get("/db"))
    )

    document = HttpSpotSource("http://localhost:3000/db").fetch()
    assert len(parse_document(document).spots) == 5
