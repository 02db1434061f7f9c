"""Tests for the HTTP surface: /topics and /export.

Archive searches, image downloads and the image model are replaced with
mocks; each test gets a fresh board.
"""

import base64
import io
import zipfile
from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from clipper.main import app
from clipper.models.image import ImageRecord, SourceId
from clipper.models.topic import TopicStatus
from clipper.services.aggregator import ALL_SOURCES
from clipper.services.background import ExtractionError
from clipper.services.fetcher import FetchedImage, decode_data_url
from clipper.state import build_state

client = TestClient(app)

_CUTOUT = "data:image/png;base64," + base64.b64encode(b"cutout").decode()


@pytest.fixture(autouse=True)
def state():
    """Clear the slowapi in-memory counter and start from an empty board."""
    app.state.limiter._storage.reset()
    app.state.clipper = build_state()
    yield app.state.clipper


def _image(title: str, url: str) -> ImageRecord:
    return ImageRecord(
        title=title,
        source_url=url,
        thumbnail_url=url,
        detail_page_url="https://example.org/detail",
        license="Public Domain",
        attribution="Example Archive",
        source=SourceId.MET,
    )


def _seed(state, name: str, *images: ImageRecord) -> str:
    topic_id = state.board.add_topic(name)
    state.board.resolve_topic(topic_id, list(images))
    return topic_id


async def _fake_fetch(url: str, client=None) -> FetchedImage:
    if url.startswith("data:"):
        return decode_data_url(url)
    return FetchedImage(b"original", "image/jpeg")


def test_root():
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Hello from Public Domain Clipper"}


# ---------------------------------------------------------------------------
# /topics
# ---------------------------------------------------------------------------


class TestTopics:
    def test_search_populates_board(self):
        images = [_image("Still Life with Bananas", "https://example.org/a.jpg")]
        with patch("clipper.state.get_topic_images", new=AsyncMock(return_value=images)) as search:
            response = client.post("/topics", json={"topic": "  Bananas  "})

        assert response.status_code == 202
        body = response.json()
        assert body["display_name"] == "Bananas"
        assert body["status"] == "loading"
        assert body["selected"] is True

        search.assert_awaited_once()
        args = search.await_args.args
        assert args[0] == "Bananas"
        assert args[2] == ALL_SOURCES
        assert args[3] == 3

        board = client.get("/topics").json()
        assert board["all_loaded"] is True
        assert board["total_image_count"] == 1
        assert board["topics"][0]["status"] == "success"
        assert board["topics"][0]["images"][0]["title"] == "Still Life with Bananas"

    def test_search_with_source_subset_and_limit(self):
        with patch("clipper.state.get_topic_images", new=AsyncMock(return_value=[])) as search:
            response = client.post(
                "/topics",
                json={"topic": "Comets", "sources": ["NASA", "The Met"], "per_source_limit": 5},
            )

        assert response.status_code == 202
        args = search.await_args.args
        assert args[2] == frozenset({SourceId.NASA, SourceId.MET})
        assert args[3] == 5

    def test_failed_search_marks_topic_as_error(self, state):
        with patch("clipper.state.get_topic_images", new=AsyncMock(side_effect=RuntimeError("down"))):
            client.post("/topics", json={"topic": "Bananas"})

        assert state.board.topics[0].status is TopicStatus.ERROR

    def test_newest_topic_first(self, state):
        with patch("clipper.state.get_topic_images", new=AsyncMock(return_value=[])):
            client.post("/topics", json={"topic": "Bananas"})
            client.post("/topics", json={"topic": "Mushrooms"})

        names = [t["display_name"] for t in client.get("/topics").json()["topics"]]
        assert names == ["Mushrooms", "Bananas"]

    def test_blank_topic_rejected(self):
        response = client.post("/topics", json={"topic": "   "})
        assert response.status_code == 400

    def test_limit_out_of_range(self):
        response = client.post("/topics", json={"topic": "Bananas", "per_source_limit": 11})
        assert response.status_code == 422

    def test_unknown_source(self):
        response = client.post("/topics", json={"topic": "Bananas", "sources": ["Louvre"]})
        assert response.status_code == 422

    def test_delete(self, state):
        topic_id = _seed(state, "Bananas")
        assert client.delete(f"/topics/{topic_id}").status_code == 204
        assert state.board.topics == []
        assert topic_id not in state.board.selection

    def test_delete_unknown(self):
        assert client.delete("/topics/nope").status_code == 404


class TestCleanImage:
    def test_success(self, state):
        topic_id = _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.remover.remove_background = AsyncMock(return_value=_CUTOUT)

        response = client.post(f"/topics/{topic_id}/images/clean", json={"title": "Plate"})

        assert response.status_code == 200
        assert response.json()["extracted_url"] == _CUTOUT
        assert response.json()["is_extracting"] is False
        assert state.board.extracted_count == 1

    def test_failure_returns_502_and_clears_flag(self, state):
        topic_id = _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.remover.remove_background = AsyncMock(side_effect=ExtractionError("no image"))

        response = client.post(f"/topics/{topic_id}/images/clean", json={"title": "Plate"})

        assert response.status_code == 502
        assert "Could not extract" in response.json()["detail"]
        image = state.board.get_topic(topic_id).images[0]
        assert image.is_extracting is False
        assert image.extracted_url is None

    def test_busy_image(self, state):
        topic_id = _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.board.update_image(topic_id, "Plate", is_extracting=True)

        response = client.post(f"/topics/{topic_id}/images/clean", json={"title": "Plate"})
        assert response.status_code == 409

    def test_unknown_image(self, state):
        topic_id = _seed(state, "Bananas")
        response = client.post(f"/topics/{topic_id}/images/clean", json={"title": "Plate"})
        assert response.status_code == 404


# ---------------------------------------------------------------------------
# /export
# ---------------------------------------------------------------------------


class TestSelection:
    def test_deselect_one(self, state):
        first = _seed(state, "Bananas")
        second = _seed(state, "Mushrooms")

        response = client.put("/export/selection", json={"selected": False, "topic_ids": [first]})

        assert response.status_code == 200
        assert response.json()["selection"] == {first: False, second: True}

    def test_select_none(self, state):
        _seed(state, "Bananas")
        response = client.put("/export/selection", json={"selected": False})
        assert set(response.json()["selection"].values()) == {False}

    def test_unknown_topic(self):
        response = client.put("/export/selection", json={"topic_ids": ["nope"]})
        assert response.status_code == 404


class TestExport:
    def test_extracted_archive_download(self, state):
        _seed(state, "Mushrooms", _image("Amanita", "https://example.org/amanita.jpg"))
        _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.remover.remove_background = AsyncMock(return_value=_CUTOUT)

        with patch("clipper.services.exporter.fetch_bytes", new=_fake_fetch):
            response = client.post("/export", json={"mode": "extracted"})

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        assert (
            response.headers["content-disposition"]
            == 'attachment; filename="Bananas_Mushrooms_Extracted.zip"'
        )
        assert response.headers["x-files-written"] == "2"
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert archive.read("collection/Bananas/01_Plate.png") == b"cutout"

        status = client.get("/export/status").json()
        assert status["running"] is False
        assert status["log"][-1]["message"] == "COMPLETE: Bananas_Mushrooms_Extracted.zip"
        assert client.get("/topics").json()["extracted_count"] == 2

    def test_originals_archive_download(self, state):
        _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.remover.remove_background = AsyncMock()

        with patch("clipper.services.exporter.fetch_bytes", new=_fake_fetch):
            response = client.post("/export", json={"mode": "originals"})

        assert response.status_code == 200
        state.remover.remove_background.assert_not_awaited()
        archive = zipfile.ZipFile(io.BytesIO(response.content))
        assert archive.read("pd_original_archive/Bananas/01_Plate.jpg") == b"original"

    def test_nothing_selected(self, state):
        _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.board.select_all(False)

        response = client.post("/export", json={"mode": "originals"})

        assert response.status_code == 400
        log = client.get("/export/status").json()["log"]
        assert log[-1]["message"] == "Error: No subjects selected for export."

    def test_searches_still_loading(self, state):
        state.board.add_topic("Bananas")
        response = client.post("/export", json={"mode": "originals"})
        assert response.status_code == 409

    def test_export_already_running(self, state):
        _seed(state, "Bananas", _image("Plate", "https://example.org/plate.jpg"))
        state.exporter._running = True

        response = client.post("/export", json={"mode": "originals"})
        assert response.status_code == 409
