import pytest
from unittest.mock import AsyncMock
from fastapi import status

from core.exceptions import GenerationError, PersistenceError
from core.models import BloggerInfo, FeedPage, RoastRecord
from core.prompts import ANALYZE_FALLBACK_ROAST, INVALID_URL_MESSAGE

PROFILE_URL = "https://www.xiaohongshu.com/user/profile/abc123"


def make_record(created_at=1700000000000, blogger_id="abc123", roast=None):
    return RoastRecord(
        id=f"id{created_at}",
        created_at=created_at,
        nickname="花叔",
        avatar="https://sns-avatar-qc.xhscdn.com/avatar/abc123.jpg",
        roast=roast or "【开场】\n这位博主**很会**生活。" + "真的很会。" * 10,
        url=PROFILE_URL,
        share_id=f"share{created_at % 100000:05d}",
        blogger_id=blogger_id,
    )


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_endpoint(self, test_client):
        response = test_client.get("/healthcheck")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "healthy"
        assert "timestamp" in data
        assert "version" in data

    def test_ping_endpoint(self, test_client):
        response = test_client.get("/monitoring/ping")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["message"] == "pong"

    def test_detailed_health(self, test_client, override_dependencies):
        response = test_client.get("/monitoring/detailed")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["components"]["database"]["status"] == "healthy"
        assert data["components"]["completion_api"]["status"] == "configured"
        assert data["status"] == "healthy"


class TestAnalyzeEndpoint:
    """Test POST /api/analyze."""

    def test_analyze_success(self, test_client, override_dependencies, mock_store, sample_roast):
        mock_store.save_roast = AsyncMock(return_value=make_record())

        response = test_client.post("/api/analyze", json={"url": PROFILE_URL})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["roast"] == sample_roast
        assert data["blogger"]["nickname"] == "花叔（只工作不上班版）"
        assert data["isError"] is False
        assert data["shareId"] == make_record().share_id
        assert "error" not in data

    def test_analyze_invalid_url(self, test_client, override_dependencies, mock_content_provider):
        response = test_client.post("/api/analyze", json={"url": "https://example.com/u/1"})

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        error = response.json()["error"]
        assert error["code"] == "VALIDATION_ERROR"
        assert error["message"] == INVALID_URL_MESSAGE
        mock_content_provider.fetch_raw_content.assert_not_called()

    def test_analyze_generation_failure_returns_200(
        self, test_client, override_dependencies, mock_completion_provider, mock_store
    ):
        mock_completion_provider.generate_roast.side_effect = GenerationError(
            GenerationError.HTTP_STATUS, "API返回错误状态: 500", status=500
        )
        mock_store.save_roast = AsyncMock()

        response = test_client.post("/api/analyze", json={"url": PROFILE_URL})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is False
        assert data["isError"] is True
        assert data["roast"] == ANALYZE_FALLBACK_ROAST
        assert data["errorCode"] == "GENERATION_ERROR"
        assert mock_completion_provider.generate_roast.await_count == 3
        mock_store.save_roast.assert_not_called()

    def test_analyze_unexpected_error(self, test_client, override_dependencies, mock_content_provider):
        mock_content_provider.fetch_raw_content.side_effect = RuntimeError("kaboom")

        response = test_client.post("/api/analyze", json={"url": PROFILE_URL})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is False
        assert data["isError"] is True
        assert data["errorCode"] == "INTERNAL_ERROR"
        assert "kaboom" in data["roast"]

    def test_analyze_requires_json(self, test_client, override_dependencies):
        response = test_client.post(
            "/api/analyze", content="url=x", headers={"Content-Type": "text/plain"}
        )
        assert response.status_code == status.HTTP_415_UNSUPPORTED_MEDIA_TYPE


class TestSplitPipelineEndpoints:
    """Test POST /api/fetch and POST /api/generate."""

    def test_fetch(self, test_client, override_dependencies, mock_completion_provider):
        response = test_client.post("/api/fetch", json={"url": PROFILE_URL})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["html"].startswith("Title: 花叔")
        assert data["blogger"]["nickname"] == "花叔（只工作不上班版）"
        mock_completion_provider.generate_roast.assert_not_called()

    def test_generate(self, test_client, override_dependencies, sample_roast):
        response = test_client.post(
            "/api/generate",
            json={"html": "Title: 花叔", "blogger": {"nickname": "花叔", "avatar": "/a.png"}},
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["roast"] == sample_roast
        assert data["blogger"] == {"nickname": "花叔", "avatar": "/a.png"}

    def test_generate_failure(self, test_client, override_dependencies, mock_completion_provider):
        mock_completion_provider.generate_roast.side_effect = GenerationError(
            GenerationError.EMPTY_RESPONSE, "API返回空响应"
        )

        response = test_client.post("/api/generate", json={"html": "Title: 花叔"})

        data = response.json()
        assert response.status_code == status.HTTP_200_OK
        assert data["success"] is False
        assert data["isError"] is True
        assert mock_completion_provider.generate_roast.await_count == 1


class TestSelfTestEndpoint:
    """Test GET /api/test."""

    def test_reports_environment_and_ping(self, test_client, override_dependencies):
        response = test_client.get("/api/test")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["env"]["hasApiKey"] is True
        assert data["env"]["apiKeyPrefix"] == "sk-te..."
        assert data["apiTest"]["responseStatus"] == "200 OK"
        assert "timestamp" in data


class TestRoastStorageEndpoints:
    """Test saving, sharing and the feed."""

    def test_save_roast(self, test_client, override_dependencies, mock_store, sample_roast):
        record = make_record()
        mock_store.save_roast = AsyncMock(return_value=record)

        response = test_client.post(
            "/api/roasts",
            json={"url": PROFILE_URL, "blogger": {"nickname": "花叔"}, "roast": sample_roast},
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"success": True, "shareId": record.share_id, "id": record.id}
        url, blogger, roast = mock_store.save_roast.await_args.args
        assert blogger == BloggerInfo(nickname="花叔")

    def test_save_error_roast_rejected(self, test_client, override_dependencies, mock_store):
        mock_store.save_roast = AsyncMock()

        response = test_client.post(
            "/api/roasts",
            json={"url": PROFILE_URL, "blogger": {"nickname": "花叔"}, "roast": ANALYZE_FALLBACK_ROAST},
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        mock_store.save_roast.assert_not_called()

    def test_save_failure(self, test_client, override_dependencies, mock_store, sample_roast):
        mock_store.save_roast = AsyncMock(side_effect=PersistenceError("save_roast", "disk full"))

        response = test_client.post(
            "/api/roasts",
            json={"url": PROFILE_URL, "blogger": {"nickname": "花叔"}, "roast": sample_roast},
        )

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["error"]["code"] == "PERSISTENCE_ERROR"

    def test_feed(self, test_client, override_dependencies, mock_store):
        records = [make_record(200, "b2"), make_record(100, "b1")]
        mock_store.get_recent_roasts = AsyncMock(
            return_value=FeedPage(roasts=records, next_cursor="100_id100")
        )

        response = test_client.get("/api/roasts", params={"limit": 2})

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert [r["createdAt"] for r in data["roasts"]] == [200, 100]
        assert data["roasts"][0]["bloggerId"] == "b2"
        assert data["roasts"][0]["blogger"]["nickname"] == "花叔"
        assert data["nextCursor"] == "100_id100"
        mock_store.get_recent_roasts.assert_awaited_once_with(cursor=None, page_size=2)

    def test_feed_last_page(self, test_client, override_dependencies, mock_store):
        mock_store.get_recent_roasts = AsyncMock(return_value=FeedPage(roasts=[]))

        response = test_client.get("/api/roasts", params={"cursor": "100_id100"})

        assert response.json() == {"roasts": [], "nextCursor": None}
        mock_store.get_recent_roasts.assert_awaited_once_with(cursor="100_id100", page_size=10)

    def test_feed_limit_validated(self, test_client, override_dependencies):
        response = test_client.get("/api/roasts", params={"limit": 0})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_share_lookup(self, test_client, override_dependencies, mock_store):
        record = make_record()
        mock_store.get_roast_by_share_id = AsyncMock(return_value=record)

        response = test_client.get(f"/api/share/{record.share_id}")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["shareId"] == record.share_id
        assert data["roast"] == record.roast
        assert '<h4 class="roast-heading">【开场】</h4>' in data["html"]
        assert "<strong>很会</strong>" in data["html"]
        assert data["exportFilename"] == f"小红书吐槽-花叔-{record.created_at}.png"

    def test_share_not_found(self, test_client, override_dependencies, mock_store):
        mock_store.get_roast_by_share_id = AsyncMock(return_value=None)

        response = test_client.get("/api/share/missing123")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"]["code"] == "SHARE_NOT_FOUND"

    def test_blogger_history(self, test_client, override_dependencies, mock_store):
        mock_store.get_blogger_roast_history = AsyncMock(
            return_value=[make_record(300), make_record(200)]
        )

        response = test_client.get("/api/bloggers/abc123/roasts", params={"limit": 5})

        assert response.status_code == status.HTTP_200_OK
        assert [r["createdAt"] for r in response.json()["roasts"]] == [300, 200]
        mock_store.get_blogger_roast_history.assert_awaited_once_with("abc123", limit=5)
