from core.config import get_settings
from providers.content_provider import JinaReaderProvider
from providers.llm_provider import DeepSeekProvider
from services.roast_service import RoastService
from services.roast_store import RoastStore

settings = get_settings()

roast_store = RoastStore(
    overfetch_factor=settings.feed_overfetch_factor,
    max_rounds=settings.feed_max_rounds,
    min_roast_length=settings.min_roast_length,
)

completion_provider = DeepSeekProvider(
    api_key=settings.deepseek_api_key,
    api_url=settings.deepseek_api_url,
    model=settings.deepseek_model,
    temperature=settings.temperature,
    max_tokens=settings.max_tokens,
    max_content_chars=settings.max_content_chars,
    timeout=settings.generation_timeout,
)

roast_service = RoastService(
    content_provider=JinaReaderProvider(
        base_url=settings.proxy_base_url, timeout=settings.fetch_timeout
    ),
    completion_provider=completion_provider,
    store=roast_store,
    required_domain=settings.required_domain,
    max_attempts=settings.generation_max_attempts,
    retry_delay=settings.generation_retry_delay,
    persist_results=settings.persist_results,
)


def get_roast_service() -> RoastService:
    return roast_service


def get_roast_store() -> RoastStore:
    return roast_store


def get_completion_provider() -> DeepSeekProvider:
    return completion_provider
