"""Integration tests for the REST signal source using httpx.MockTransport."""

import json
from urllib.parse import parse_qs

import httpx
import pytest

from branchfeed.ranking.engine import RankingEngine
from branchfeed.ranking.metrics import RankingMetrics
from branchfeed.ranking.models import PoolPriority
from branchfeed.signals.errors import SignalQueryError
from branchfeed.signals.rest import RestSignalSource


BASE_URL = "https://project.example.test"

STORIES = [
    {
        "id": "s1",
        "author_id": "a",
        "title": "First",
        "likes_count": 10,
        "views_count": 100,
        "author": {"username": "alice"},
        "story_nodes": [{"count": 6}],
    },
    {
        "id": "s2",
        "author_id": "b",
        "title": "Second",
        "likes_count": 1,
        "views_count": None,
        "author": None,
        "story_nodes": [],
    },
]


class _Backend:
    """Minimal PostgREST stand-in that records requests."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.status_by_table: dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        table = request.url.path.rsplit("/", 1)[-1]
        if table in self.status_by_table:
            return httpx.Response(self.status_by_table[table], json={"message": "nope"})

        params = {k: v[0] for k, v in parse_qs(request.url.query.decode()).items()}
        if table == "followers" and params.get("follower_id") == "eq.r":
            return httpx.Response(200, json=[{"following_id": "a"}])
        if table == "followers" and "follower_id,following_id" in params.get("select", ""):
            return httpx.Response(
                200,
                json=[
                    {"follower_id": "m1", "following_id": "a"},
                    {"follower_id": "r", "following_id": "a"},
                ],
            )
        if table == "followers":
            return httpx.Response(200, json=[{"following_id": "a"}, {"following_id": "a"}])
        if table == "stories" and params.get("select") == "author_id":
            return httpx.Response(200, json=[{"author_id": "a"}])
        if table == "stories":
            return httpx.Response(200, json=STORIES)
        if table == "profiles":
            return httpx.Response(
                200,
                json=[
                    {"id": "a", "username": "alice", "avatar_url": None},
                    {"id": "m1", "username": "mallory"},
                ],
            )
        return httpx.Response(200, json=[])


@pytest.fixture
def backend() -> _Backend:
    """Create a mock REST backend."""
    RankingMetrics.reset()
    return _Backend()


@pytest.fixture
def source(backend: _Backend) -> RestSignalSource:
    """Create a REST source wired to the mock backend."""
    return RestSignalSource(
        BASE_URL, "anon-key", transport=httpx.MockTransport(backend.handler)
    )


class TestRestSignalSource:
    """Tests for request shape and response decoding."""

    def test_headers_and_path(self, source: RestSignalSource, backend: _Backend) -> None:
        """Test requests carry the API key and hit the REST path."""
        assert source.list_following("r") == ["a"]

        request = backend.requests[0]
        assert request.url.path == "/rest/v1/followers"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["Authorization"] == "Bearer anon-key"

    def test_in_filter(self, source: RestSignalSource, backend: _Backend) -> None:
        """Test id lists are sent as quoted PostgREST in-filters."""
        source.list_stories(["s1", "s2"])
        query = parse_qs(backend.requests[0].url.query.decode())
        assert query["id"] == ['in.("s1","s2")']

    def test_story_decoding(self, source: RestSignalSource) -> None:
        """Test embedded author and node counts are flattened."""
        first, second = source.list_popular_stories(limit=2)
        assert first.author_username == "alice"
        assert first.branches_count == 6
        assert second.views_count == 0
        assert second.author_username is None

    def test_popular_stories_params(
        self, source: RestSignalSource, backend: _Backend
    ) -> None:
        """Test ordering, root filter, limit and exclusion are requested."""
        source.list_popular_stories(limit=4, exclude_id="s9")
        query = parse_qs(backend.requests[0].url.query.decode())
        assert query["order"] == ["likes_count.desc,views_count.desc"]
        assert query["is_root"] == ["eq.true"]
        assert query["limit"] == ["4"]
        assert query["id"] == ["neq.s9"]

    def test_popular_profiles_counts(self, source: RestSignalSource) -> None:
        """Test follower and story counts are tallied per profile."""
        profiles = source.list_popular_profiles("r", limit=5)
        by_id = {p.id: p for p in profiles}
        assert by_id["a"].followers_count == 2
        assert by_id["a"].stories_count == 1
        assert by_id["m1"].followers_count == 0

    def test_empty_inputs_skip_requests(
        self, source: RestSignalSource, backend: _Backend
    ) -> None:
        """Test empty id lists and zero limits never hit the network."""
        assert source.list_stories([]) == []
        assert source.get_profiles([]) == []
        assert source.list_popular_stories(limit=0) == []
        assert backend.requests == []

    def test_http_error(self, source: RestSignalSource, backend: _Backend) -> None:
        """Test non-2xx responses raise SignalQueryError."""
        backend.status_by_table["story_likes"] = 503
        with pytest.raises(SignalQueryError, match="HTTP 503"):
            source.list_liked_story_ids("r")

    def test_transport_error(self) -> None:
        """Test connection failures raise SignalQueryError."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        source = RestSignalSource(BASE_URL, "k", transport=httpx.MockTransport(refuse))
        with pytest.raises(SignalQueryError) as exc_info:
            source.list_following("r")
        assert exc_info.value.query == "followers"

    def test_malformed_bodies(self) -> None:
        """Test invalid JSON and non-array bodies raise SignalQueryError."""
        bodies = iter([b"not json", json.dumps({"rows": []}).encode()])

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=next(bodies))

        with RestSignalSource(BASE_URL, "k", transport=httpx.MockTransport(respond)) as source:
            with pytest.raises(SignalQueryError, match="not valid JSON"):
                source.list_following("r")
            with pytest.raises(SignalQueryError, match="not a JSON array"):
                source.list_following("r")


class TestRankingOverRest:
    """End-to-end ranking against the REST source."""

    def test_suggest_follows(self, source: RestSignalSource) -> None:
        """Test mutual connections are found through the REST backend."""
        result = RankingEngine(source, max_workers=1).suggest_follows("r")

        assert result.candidates[0].entity_id == "m1"
        assert result.candidates[0].score == 110
        assert "a" not in result.entity_ids

    def test_degraded_when_backend_partially_down(
        self, source: RestSignalSource, backend: _Backend
    ) -> None:
        """Test a failing table degrades the result instead of failing it."""
        backend.status_by_table["followers"] = 500

        result = RankingEngine(source).recommend_stories("r")

        assert PoolPriority.AFFINITY in result.pools_failed
        assert result.degraded
        assert result.entity_ids
