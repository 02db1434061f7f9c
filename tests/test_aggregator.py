"""Tests for clipper.services.aggregator: routing, fan-out and interleaving."""

from unittest.mock import AsyncMock, patch

import pytest

from clipper.models.image import ImageRecord, SourceId
from clipper.models.topic import SmartQuery
from clipper.services.aggregator import (
    INTERLEAVE_ORDER,
    MAX_TOPIC_IMAGES,
    get_topic_images,
    interleave,
    phrase_for,
)


def _rec(source: SourceId, n: int) -> ImageRecord:
    return ImageRecord(
        title=f"{source.name}-{n}",
        source_url=f"https://example.com/{source.name}/{n}.jpg",
        thumbnail_url="",
        detail_page_url="",
        license="PD",
        attribution="",
        source=source,
    )


def _optimizer(query: SmartQuery | None = None):
    opt = AsyncMock()
    opt.optimize = AsyncMock(return_value=query or SmartQuery(
        general_phrase="Musa", archival_phrase="banana history",
        art_phrase="banana still life", space_phrase="banana space",
    ))
    return opt


class TestInterleave:
    def test_round_robin_priority_order(self):
        results = {
            SourceId.LOC: [_rec(SourceId.LOC, 0)],
            SourceId.WIKIMEDIA: [_rec(SourceId.WIKIMEDIA, 0), _rec(SourceId.WIKIMEDIA, 1)],
            SourceId.MET: [_rec(SourceId.MET, 0)],
            SourceId.NASA: [_rec(SourceId.NASA, 0), _rec(SourceId.NASA, 1)],
        }
        titles = [r.title for r in interleave(results)]
        assert titles == [
            "WIKIMEDIA-0", "MET-0", "NASA-0", "LOC-0",
            "WIKIMEDIA-1", "NASA-1",
        ]

    def test_preserves_each_source_relative_order(self):
        results = {s: [_rec(s, i) for i in range(4 + k)] for k, s in enumerate(INTERLEAVE_ORDER)}
        merged = interleave(results)
        for source in INTERLEAVE_ORDER:
            own = [r.title for r in merged if r.source == source]
            assert own == [r.title for r in results[source]][: len(own)]

    def test_truncates_to_maximum(self):
        results = {s: [_rec(s, i) for i in range(10)] for s in INTERLEAVE_ORDER}
        assert len(interleave(results)) == MAX_TOPIC_IMAGES

    def test_empty_input(self):
        assert interleave({}) == []


class TestPhraseRouting:
    def test_each_category(self):
        q = SmartQuery(general_phrase="g", archival_phrase="a", art_phrase="r", space_phrase="s")
        assert phrase_for(SourceId.WIKIMEDIA, q) == "g"
        assert phrase_for(SourceId.LOC, q) == "a"
        assert phrase_for(SourceId.INTERNET_ARCHIVE, q) == "a"
        assert phrase_for(SourceId.MET, q) == "r"
        assert phrase_for(SourceId.ARTIC, q) == "r"
        assert phrase_for(SourceId.CLEVELAND, q) == "r"
        assert phrase_for(SourceId.NASA, q) == "s"


class TestGetTopicImages:
    @pytest.mark.asyncio
    async def test_all_sources_disabled_makes_no_calls(self):
        fetch = AsyncMock()
        optimizer = _optimizer()
        with patch("clipper.services.aggregator.fetch_images", new=fetch):
            result = await get_topic_images("Bananas", optimizer, frozenset(), 3)

        assert result == []
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_only_enabled_sources_are_queried(self):
        async def fake_fetch(source, query, limit, client=None):
            return [_rec(source, 0)]

        fetch = AsyncMock(side_effect=fake_fetch)
        with patch("clipper.services.aggregator.fetch_images", new=fetch):
            result = await get_topic_images(
                "Bananas", _optimizer(), {SourceId.NASA, SourceId.MET}, 2
            )

        called = {c.args[0] for c in fetch.await_args_list}
        assert called == {SourceId.NASA, SourceId.MET}
        assert [r.source for r in result] == [SourceId.MET, SourceId.NASA]

    @pytest.mark.asyncio
    async def test_limits_and_phrases(self):
        fetch = AsyncMock(return_value=[])
        with patch("clipper.services.aggregator.fetch_images", new=fetch):
            await get_topic_images("Bananas", _optimizer(), frozenset(SourceId), 3)

        calls = {c.args[0]: c.args[1:3] for c in fetch.await_args_list}
        assert calls[SourceId.WIKIMEDIA] == ("Musa", 4)
        assert calls[SourceId.LOC] == ("banana history", 3)
        assert calls[SourceId.CLEVELAND] == ("banana still life", 3)
        assert calls[SourceId.NASA] == ("banana space", 3)

    @pytest.mark.asyncio
    async def test_optimizer_called_once(self):
        optimizer = _optimizer()
        with patch("clipper.services.aggregator.fetch_images", new=AsyncMock(return_value=[])):
            await get_topic_images("Bananas", optimizer, frozenset(SourceId), 3)
        optimizer.optimize.assert_awaited_once_with("Bananas")

    @pytest.mark.asyncio
    async def test_empty_source_does_not_affect_others(self):
        async def fake_fetch(source, query, limit, client=None):
            return [] if source is SourceId.WIKIMEDIA else [_rec(source, 0)]

        with patch("clipper.services.aggregator.fetch_images", new=AsyncMock(side_effect=fake_fetch)):
            result = await get_topic_images("Bananas", _optimizer(), frozenset(SourceId), 1)

        assert len(result) == len(SourceId) - 1
        assert SourceId.WIKIMEDIA not in {r.source for r in result}
