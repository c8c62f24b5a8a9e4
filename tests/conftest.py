import pytest
from unittest.mock import Mock, AsyncMock
from fastapi.testclient import TestClient
import os
import sys
import tempfile
from typing import Generator

# Add the parent directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Settings are read once at import time, so point them at throwaway storage first
_test_db_dir = tempfile.mkdtemp(prefix="roast_api_test_")
os.environ["DATABASE_URL"] = (
    f"sqlite+aiosqlite:///{os.path.join(_test_db_dir, 'roast_api_test.db')}"
)
os.environ["ENVIRONMENT"] = "test"
os.environ.pop("DEEPSEEK_API_KEY", None)

from main import app
from api.dependencies import get_completion_provider, get_roast_service, get_roast_store
from core.database import build_engine, build_session_factory, create_db_and_tables
from core.models import BloggerInfo
from providers.llm_provider import CompletionProvider
from services.roast_service import RoastService
from services.roast_store import RoastStore

SAMPLE_ROAST = (
    "【开场白】\n"
    "这位博主的主页像一本没有目录的旅行杂志，**每一页都在假装随意**。\n\n"
    "【总结】\n"
    "精致得让人怀疑滤镜才是本体。"
)


@pytest.fixture
def test_client() -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def store(tmp_path) -> RoastStore:
    """RoastStore backed by a fresh SQLite file."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'store.db'}")
    await create_db_and_tables(bind=engine)
    yield RoastStore(session_factory=build_session_factory(engine))
    await engine.dispose()


@pytest.fixture
def mock_content_provider():
    """Content provider returning a small profile snapshot."""
    provider = Mock()
    provider.fetch_raw_content = AsyncMock(
        return_value=(
            "Title: 花叔（只工作不上班版）\n"
            "![avatar](https://sns-avatar-qc.xhscdn.com/avatar/abc123.jpg)\n"
            "[旅行日记](https://www.xiaohongshu.com/explore/1?xsec=1)\n"
        )
    )
    return provider


@pytest.fixture
def mock_completion_provider():
    """Completion provider returning a well-formed roast."""
    provider = Mock(spec=CompletionProvider)
    provider.generate_roast = AsyncMock(return_value=SAMPLE_ROAST)
    provider.check_connectivity = AsyncMock(
        return_value={"result": "API测试成功: 你好", "responseStatus": "200 OK"}
    )
    provider.has_credentials = True
    provider.api_key_prefix = "sk-te..."
    return provider


@pytest.fixture
def mock_store():
    """Mock RoastStore for API tests."""
    return Mock(spec=RoastStore)


@pytest.fixture
def no_sleep():
    """Replacement for asyncio.sleep that records delays."""
    return AsyncMock()


@pytest.fixture
def roast_service(mock_content_provider, mock_completion_provider, no_sleep):
    """RoastService wired with mocks and no persistence."""
    return RoastService(
        content_provider=mock_content_provider,
        completion_provider=mock_completion_provider,
        store=None,
        sleep=no_sleep,
    )


@pytest.fixture
def override_dependencies(roast_service, mock_store, mock_completion_provider):
    """Route the app's dependencies to the mocks above."""
    roast_service.store = mock_store
    app.dependency_overrides[get_roast_service] = lambda: roast_service
    app.dependency_overrides[get_roast_store] = lambda: mock_store
    app.dependency_overrides[get_completion_provider] = lambda: mock_completion_provider
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def sample_blogger():
    """Sample blogger info for testing."""
    return BloggerInfo(
        nickname="花叔",
        avatar="https://sns-avatar-qc.xhscdn.com/avatar/abc123.jpg",
    )


@pytest.fixture
def sample_roast():
    return SAMPLE_ROAST
