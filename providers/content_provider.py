"""
Content Provider Classes

Fetch a rendered text snapshot of a profile page. Profile pages are script
rendered, so the default provider goes through a "read as text" proxy instead
of requesting the page directly.
"""

import logging
import re
from abc import ABC, abstractmethod
import aiohttp

from core.exceptions import FetchError

logger = logging.getLogger(__name__)

SCHEME_PATTERN = re.compile(r"^https?://")


class ContentProvider(ABC):
    """Abstract base class for all content providers"""

    @abstractmethod
    async def fetch_raw_content(self, url: str) -> str:
        """Return the raw page text for `url`. Raises FetchError on failure."""
        pass

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Source identifier for this provider"""
        pass


class JinaReaderProvider(ContentProvider):
    """Fetch profile pages through the r.jina.ai text proxy"""

    def __init__(self, base_url: str = "https://r.jina.ai/", timeout: float = 30.0):
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout
        self.headers = {
            "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
            "Accept": "text/plain,text/html;q=0.9,*/*;q=0.8",
        }

    @property
    def source_name(self) -> str:
        return "jina"

    def build_proxy_url(self, url: str) -> str:
        """Proxy URL for `url`, with any http(s) scheme stripped first"""
        return f"{self.base_url}{SCHEME_PATTERN.sub('', url.strip())}"

    async def fetch_raw_content(self, url: str) -> str:
        proxy_url = self.build_proxy_url(url)
        logger.info(f"Fetching content via proxy: {proxy_url}")

        try:
            timeout = aiohttp.ClientTimeout(total=self.timeout)
            async with aiohttp.ClientSession(
                timeout=timeout, headers=self.headers
            ) as session:
                async with session.get(proxy_url) as response:
                    if not 200 <= response.status < 300:
                        raise FetchError(
                            url,
                            f"Failed to fetch content: {response.status}",
                            status=response.status,
                        )
                    body = await response.text(errors="replace")

        except FetchError:
            raise
        except Exception as e:
            logger.error(f"Error fetching content for {url}: {e}")
            raise FetchError(url, f"{type(e).__name__}: {e}")

        logger.info(
            f"Fetched raw content, length: {len(body)}",
            extra={"url": url, "content_length": len(body)},
        )
        return body
