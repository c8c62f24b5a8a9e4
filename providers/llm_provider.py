"""
Completion Provider Classes

Send the roast prompt to a hosted chat-completion API and return the first
completion's text. Every failure surfaces as a `GenerationError` with a `kind`;
deciding whether to retry or to show a canned roast is left to the caller.
"""

import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional
import aiohttp

from core.exceptions import GenerationError
from core.prompts import build_roast_prompt, CONNECTIVITY_PROMPT

logger = logging.getLogger(__name__)

ROAST_MARKUP_HINTS = ("【", "**")
ERROR_BODY_HINTS = ("error", "An error occurred")


def extract_embedded_json(text: str) -> Optional[Dict[str, Any]]:
    """Return the first decodable JSON object embedded in `text`, if any"""
    decoder = json.JSONDecoder()
    for index, char in enumerate(text):
        if char != "{":
            continue
        try:
            obj, _ = decoder.raw_decode(text, index)
        except json.JSONDecodeError:
            continue
        if isinstance(obj, dict):
            return obj
    return None


def extract_completion_text(data: Any) -> str:
    """Pull `choices[0].message.content` out of a decoded response"""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise GenerationError(
            GenerationError.MALFORMED_SHAPE, "API响应格式不正确"
        )

    if not isinstance(content, str) or not content.strip():
        raise GenerationError(
            GenerationError.MALFORMED_SHAPE, "API响应内容为空"
        )
    return content


def parse_completion_body(body: str) -> str:
    """
    Decode a completion response body into roast text.

    The body is read as text because the vendor sometimes answers with plain
    text or broken JSON. Strategies, in order: strict JSON, the first JSON
    object embedded in the text, then the raw text itself when it already
    carries roast markup and no error marker.
    """
    if not body or not body.strip():
        raise GenerationError(GenerationError.EMPTY_RESPONSE, "API返回空响应")

    try:
        return extract_completion_text(json.loads(body))
    except json.JSONDecodeError:
        pass

    embedded = extract_embedded_json(body)
    if embedded is not None:
        try:
            return extract_completion_text(embedded)
        except GenerationError:
            logger.debug("Embedded JSON is not a completion object, ignoring it")

    if any(hint in body for hint in ERROR_BODY_HINTS):
        raise GenerationError(
            GenerationError.UNPARSABLE, f"API返回错误: {body[:200]}"
        )

    if any(hint in body for hint in ROAST_MARKUP_HINTS):
        logger.info("Completion API returned plain roast text instead of JSON")
        return body

    raise GenerationError(GenerationError.UNPARSABLE, "无法解析API响应")


class CompletionProvider(ABC):
    """Abstract base class for all completion providers"""

    @abstractmethod
    async def generate_roast(self, content: str) -> str:
        """Return roast text for sanitized content. Raises GenerationError."""
        pass

    @abstractmethod
    async def check_connectivity(self) -> Dict[str, str]:
        """Send a trivial prompt and describe the outcome"""
        pass

    @property
    @abstractmethod
    def has_credentials(self) -> bool:
        pass

    @property
    def api_key_prefix(self) -> str:
        """Masked key prefix for diagnostics"""
        return "undefined"


class DeepSeekProvider(CompletionProvider):
    """Generate roasts with the DeepSeek chat-completions endpoint"""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.deepseek.com/v1/chat/completions",
        model: str = "deepseek-reasoner",
        temperature: float = 0.7,
        max_tokens: int = 4000,
        max_content_chars: int = 18000,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.max_content_chars = max_content_chars
        self.timeout = timeout

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key)

    @property
    def api_key_prefix(self) -> str:
        return self.api_key[:5] + "..." if self.api_key else "undefined"

    def build_request(self, content: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": build_roast_prompt(content, self.max_content_chars),
                }
            ],
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
        }

    async def _post(self, payload: Dict[str, Any]):
        """POST the payload and return (status, reason, body text)"""
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    self.api_url, json=payload, headers=headers
                ) as response:
                    body = await response.text()
                    return response.status, response.reason, body
        except Exception as e:
            raise GenerationError(GenerationError.TRANSPORT, f"{type(e).__name__}: {e}")

    async def generate_roast(self, content: str) -> str:
        if not self.api_key:
            logger.error("DeepSeek API key is not configured")
            raise GenerationError(
                GenerationError.MISSING_CREDENTIALS, "缺少DeepSeek API密钥"
            )

        payload = self.build_request(content)
        start_time = time.time()
        status, _, body = await self._post(payload)
        logger.info(
            f"DeepSeek API responded with {status}",
            extra={
                "status": status,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )

        if not 200 <= status < 300:
            logger.warning(f"DeepSeek API error body: {body[:200]}")
            raise GenerationError(
                GenerationError.HTTP_STATUS,
                f"API返回错误状态: {status}",
                status=status,
            )

        return parse_completion_body(body)

    async def check_connectivity(self) -> Dict[str, str]:
        if not self.api_key:
            return {"result": "API测试未执行", "responseStatus": "N/A"}

        payload = {
            "model": self.model,
            "messages": [{"role": "user", "content": CONNECTIVITY_PROMPT}],
            "max_tokens": 20,
        }
        try:
            status, reason, body = await self._post(payload)
        except GenerationError as e:
            return {"result": f"API测试异常: {e.message}", "responseStatus": "N/A"}

        response_status = f"{status} {reason or ''}".strip()
        if not 200 <= status < 300:
            return {
                "result": f"API测试失败: {body[:100]}...",
                "responseStatus": response_status,
            }

        try:
            preview = parse_completion_body(body)[:20]
        except GenerationError:
            preview = body[:100]
        return {"result": f"API测试成功: {preview}", "responseStatus": response_status}
