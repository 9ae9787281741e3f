"""
Unit tests for resolution in at.hopper.resolve.resolver

Tests cover the discovery cache-aside behaviour, resolution caching with its
positive and negative lifetimes, server ordering and the end-to-end scenarios
served from preloaded discovery documents. Upstream fetches are replaced with a
counting AsyncMock so no test touches the network.
"""

from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from at.hopper.metrics import TelegrafCompatibilityClient
from at.hopper.model.aturi import parse_aturi
from at.hopper.model.discovery import DiscoveryDocument
from at.hopper.resolve.cache import (
    DiscoveryFound,
    DiscoveryNotFound,
    ResolutionFound,
    ResolutionNotFound,
    new_discovery_cache,
    new_resolution_cache,
)
from at.hopper.resolve.errors import (
    AllServersExhaustedError,
    FetchSubjectMismatchError,
    FetchTransportError,
)
from at.hopper.resolve.matcher import match_template
from at.hopper.resolve.protocol import HOST_META
from at.hopper.resolve.resolver import (
    DiscoveryCache,
    Resolver,
    resolution_cache_key,
)
from at.hopper.resolve.seeds import seed_documents

from tests.test_helpers import bsky_document, host_meta_link

MINUTE = 60


def example_document(server: str) -> DiscoveryDocument:
    return DiscoveryDocument(
        links=[host_meta_link(f"https://{server}/u/{{identity}}")]
    )


@pytest.fixture
def fetch():
    """Counting replacement for fetch_document."""
    with patch("at.hopper.resolve.resolver.fetch_document", new_callable=AsyncMock) as mock:
        yield mock


@pytest_asyncio.fixture
async def resolver(clock, mock_session):
    discovery_cache = DiscoveryCache(
        new_discovery_cache(clock=clock), mock_session, HOST_META
    )
    await discovery_cache.preload("bsky.app", bsky_document())
    return Resolver(discovery_cache, new_resolution_cache(clock=clock))


class TestResolutionCacheKey:
    def test_deterministic(self):
        key = resolution_cache_key("at://alice.bsky.social", ["bsky.app"])
        assert key == resolution_cache_key("at://alice.bsky.social", ["bsky.app"])
        assert key.isdigit()
        assert int(key) < 2**64

    def test_order_matters(self):
        assert resolution_cache_key(
            "at://alice.bsky.social", ["a.example.com", "b.example.com"]
        ) != resolution_cache_key(
            "at://alice.bsky.social", ["b.example.com", "a.example.com"]
        )

    def test_raw_input_matters(self):
        assert resolution_cache_key(
            "at://alice.bsky.social", ["bsky.app"]
        ) != resolution_cache_key(" at://alice.bsky.social", ["bsky.app"])


class TestDiscoveryCache:
    """Test suite for DiscoveryCache."""

    @pytest.mark.asyncio
    async def test_lookup_fetches_once(self, clock, mock_session, fetch):
        fetch.return_value = example_document("example.com")
        cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)

        first = await cache.lookup("example.com")
        second = await cache.lookup("example.com")

        assert isinstance(first, DiscoveryFound)
        assert first == second
        fetch.assert_called_once_with(mock_session, "example.com", HOST_META)

    @pytest.mark.asyncio
    async def test_found_is_never_refetched_on_time(self, clock, mock_session, fetch):
        fetch.return_value = example_document("example.com")
        cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)

        await cache.lookup("example.com")
        clock.advance(30 * 24 * 60 * MINUTE)
        await cache.lookup("example.com")

        assert fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_failure_is_remembered_for_ten_minutes(
        self, clock, mock_session, fetch
    ):
        fetch.side_effect = FetchTransportError("example.com: status 500")
        cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)

        entry = await cache.lookup("example.com")
        assert isinstance(entry, DiscoveryNotFound)
        assert "status 500" in entry.reason

        clock.advance(10 * MINUTE - 1)
        await cache.lookup("example.com")
        assert fetch.call_count == 1

        clock.advance(1)
        await cache.lookup("example.com")
        assert fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_refetch_replaces_failure(self, clock, mock_session, fetch):
        fetch.side_effect = [
            FetchSubjectMismatchError("example.com"),
            example_document("example.com"),
        ]
        cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)

        assert isinstance(await cache.lookup("example.com"), DiscoveryNotFound)
        clock.advance(10 * MINUTE)
        assert isinstance(await cache.lookup("example.com"), DiscoveryFound)

    @pytest.mark.asyncio
    async def test_preload_skips_fetch(self, clock, mock_session, fetch):
        cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)
        await cache.preload("bsky.app", bsky_document())

        entry = await cache.lookup("bsky.app")

        assert entry.document == bsky_document()
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_metrics(self, clock, mock_session, mock_statsd, fetch):
        fetch.side_effect = FetchTransportError("example.com")
        metrics_client = TelegrafCompatibilityClient(mock_statsd)
        cache = DiscoveryCache(
            new_discovery_cache(clock=clock), mock_session, metrics_client=metrics_client
        )

        await cache.lookup("example.com")
        await cache.lookup("example.com")

        assert mock_statsd.increments[
            ("hopper.discovery.cache", (("result", "miss"),))
        ] == 1
        assert mock_statsd.increments[
            ("hopper.discovery.cache", (("result", "hit"),))
        ] == 1
        assert mock_statsd.increments[
            ("hopper.discovery.fetch.error", (("error", "FetchTransportError"),))
        ] == 1


class TestResolver:
    """Test suite for Resolver.resolve."""

    @pytest.mark.asyncio
    async def test_resolve_identity(self, resolver, fetch):
        raw = "at://alice.bsky.social"
        destination = await resolver.resolve(raw, parse_aturi(raw), ["bsky.app"])
        assert destination == "https://bsky.app/profile/alice.bsky.social"
        fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_resolve_post(self, resolver, fetch):
        raw = "at://alice.bsky.social/app.bsky.feed.post/abc123"
        destination = await resolver.resolve(raw, parse_aturi(raw), ["bsky.app"])
        assert destination == "https://bsky.app/profile/alice.bsky.social/post/abc123"

    @pytest.mark.asyncio
    async def test_resolve_unknown_collection(self, resolver, fetch):
        raw = "at://alice.bsky.social/com.example.unknown/abc123"
        with pytest.raises(AllServersExhaustedError):
            await resolver.resolve(raw, parse_aturi(raw), ["bsky.app"])

    @pytest.mark.asyncio
    async def test_resolve_no_servers(self, resolver, fetch):
        raw = "at://alice.bsky.social"
        with pytest.raises(AllServersExhaustedError):
            await resolver.resolve(raw, parse_aturi(raw), [])

    @pytest.mark.asyncio
    async def test_failed_server_does_not_stop_iteration(self, resolver, fetch):
        fetch.side_effect = FetchTransportError("down.example.com")
        raw = "at://alice.bsky.social"

        destination = await resolver.resolve(
            raw, parse_aturi(raw), ["down.example.com", "bsky.app"]
        )

        assert destination == "https://bsky.app/profile/alice.bsky.social"
        fetch.assert_called_once()

    @pytest.mark.asyncio
    async def test_first_match_stops_iteration(self, resolver, fetch):
        fetch.return_value = example_document("a.example.com")
        raw = "at://alice.bsky.social"

        destination = await resolver.resolve(
            raw, parse_aturi(raw), ["a.example.com", "bsky.app", "c.example.com"]
        )

        assert destination == "https://a.example.com/u/alice.bsky.social"
        fetch.assert_called_once()

    @pytest.mark.asyncio
    async def test_reordered_servers(self, resolver, fetch):
        """Only the second server matches; either order resolves to it."""

        async def fake_fetch(session, hostname, protocol):
            if hostname == "b.example.com":
                return example_document("b.example.com")
            return DiscoveryDocument()

        fetch.side_effect = fake_fetch
        raw = "at://alice.bsky.social"
        aturi = parse_aturi(raw)

        forward = await resolver.resolve(raw, aturi, ["a.example.com", "b.example.com"])
        backward = await resolver.resolve(
            raw, aturi, ["b.example.com", "a.example.com"]
        )

        assert forward == "https://b.example.com/u/alice.bsky.social"
        assert backward == forward
        assert fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_success_cached_for_thirty_minutes(self, resolver, clock, fetch):
        raw = "at://alice.bsky.social"
        aturi = parse_aturi(raw)
        key = resolution_cache_key(raw, ["bsky.app"])

        with patch(
            "at.hopper.resolve.resolver.match_template", wraps=match_template
        ) as matcher:
            await resolver.resolve(raw, aturi, ["bsky.app"])
            assert await resolver.resolution_cache.get(key) == ResolutionFound(
                destination="https://bsky.app/profile/alice.bsky.social"
            )

            clock.advance(30 * MINUTE - 1)
            await resolver.resolve(raw, aturi, ["bsky.app"])
            assert matcher.call_count == 1

            clock.advance(1)
            await resolver.resolve(raw, aturi, ["bsky.app"])
            assert matcher.call_count == 2

    @pytest.mark.asyncio
    async def test_failure_cached_for_ten_minutes(self, resolver, clock, fetch):
        fetch.side_effect = FetchTransportError("down.example.com")
        raw = "at://alice.bsky.social"
        aturi = parse_aturi(raw)

        with pytest.raises(AllServersExhaustedError):
            await resolver.resolve(raw, aturi, ["down.example.com"])
        assert fetch.call_count == 1

        cached = await resolver.resolution_cache.get(
            resolution_cache_key(raw, ["down.example.com"])
        )
        assert isinstance(cached, ResolutionNotFound)

        clock.advance(10 * MINUTE - 1)
        with pytest.raises(AllServersExhaustedError) as excinfo:
            await resolver.resolve(raw, aturi, ["down.example.com"])
        assert fetch.call_count == 1
        assert excinfo.value.code == "error-web-unable-to-resolve"

        clock.advance(1)
        with pytest.raises(AllServersExhaustedError):
            await resolver.resolve(raw, aturi, ["down.example.com"])
        assert fetch.call_count == 2

    @pytest.mark.asyncio
    async def test_cache_hit_skips_network(self, resolver, fetch):
        fetch.return_value = example_document("a.example.com")
        raw = "at://alice.bsky.social"
        aturi = parse_aturi(raw)

        for _ in range(5):
            await resolver.resolve(raw, aturi, ["a.example.com"])

        assert fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_seeded_documents(self, clock, mock_session, fetch):
        discovery_cache = DiscoveryCache(new_discovery_cache(clock=clock), mock_session)
        for hostname, document in seed_documents(HOST_META).items():
            await discovery_cache.preload(hostname, document)
        resolver = Resolver(discovery_cache, new_resolution_cache(clock=clock))

        servers = ["frontpage.fyi", "whtwnd.com", "bsky.app"]
        raw = "at://did:plc:kkkcb7sys7623hcf7oefcffg/com.whtwnd.blog.entry/3l5ii332pf32u"

        destination = await resolver.resolve(raw, parse_aturi(raw), servers)

        assert destination == (
            "https://whtwnd.com/did:plc:kkkcb7sys7623hcf7oefcffg/3l5ii332pf32u"
        )
        fetch.assert_not_called()
