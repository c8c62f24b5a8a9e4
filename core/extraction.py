"""
Blogger Field Extraction.

Recovers a display name and avatar URL from the text snapshot returned by the
reader proxy. This is best-effort text mining with no formal grammar: the
nickname strategies below are tried strictly in list order and the first one
returning a non-empty name wins, so reordering `NICKNAME_STRATEGIES` changes
results. Every strategy is a pure `str -> Optional[str]` function that can be
tested on its own.

`extract_blogger_info` never raises. A strategy that blows up is logged and
skipped, and whatever has not been found keeps its default.
"""

import logging
import re
from typing import Callable, List, Optional

from bs4 import BeautifulSoup

from core.models import BloggerInfo, DEFAULT_AVATAR, DEFAULT_NICKNAME

logger = logging.getLogger(__name__)

TITLE_TAG_PATTERN = re.compile(r"<title>(.*?)(?:\s*-\s*小红书|</title>)")
H1_PATTERN = re.compile(r"<h1[^>]*>(.*?)</h1>")
TITLE_DIV_PATTERN = re.compile(r'<div[^>]*class="[^"]*title[^"]*"[^>]*>(.*?)</div>')

# "Title: 花叔（只工作不上班版）" header line emitted by the reader proxy
PROXY_TITLE_PATTERN = re.compile(
    r"Title:\s*([\u4e00-\u9fa5a-zA-Z0-9]+(?:（[\u4e00-\u9fa5a-zA-Z0-9]+）)?)"
)

LINK_TEXT_PATTERN = re.compile(
    r"""[\u4e00-\u9fa5a-zA-Z0-9（）()［］\[\]【】{}「」“”‘’"'！!？?～~、。，,]+"""
)
PARENTHESIS_PATTERN = re.compile(r"[（(]")

KNOWN_NAME_PATTERN = re.compile(r"(花叔|[\u4e00-\u9fa5]{2,4}叔)")

AVATAR_PATTERNS = [
    re.compile(r"https://sns-avatar-qc\.xhscdn\.com/avatar/[a-zA-Z0-9]+\.[a-z]+"),
    re.compile(r"https://sns-avatar-qc\.xhscdn\.com/avatar/[a-zA-Z0-9]+"),
    re.compile(r"https://sns-avatar[^\"'\s)]+"),
]


def _first_group(pattern: re.Pattern, text: str) -> Optional[str]:
    match = pattern.search(text)
    if match and match.group(1) and match.group(1).strip():
        return match.group(1).strip()
    return None


def nickname_from_title_tag(text: str) -> Optional[str]:
    return _first_group(TITLE_TAG_PATTERN, text)


def nickname_from_h1(text: str) -> Optional[str]:
    return _first_group(H1_PATTERN, text)


def nickname_from_title_div(text: str) -> Optional[str]:
    return _first_group(TITLE_DIV_PATTERN, text)


def nickname_from_proxy_title(text: str) -> Optional[str]:
    return _first_group(PROXY_TITLE_PATTERN, text)


def nickname_from_link_text(text: str) -> Optional[str]:
    """
    Walk anchor and span elements looking for a name-like text.

    A candidate containing a parenthesis wins immediately and is cut before
    the parenthesis. Otherwise the first plain candidate is used.
    """
    soup = BeautifulSoup(text, "html.parser")
    fallback = None

    for element in soup.find_all(["a", "span"]):
        # Last direct text node, so leading <img> or <svg> children are skipped
        texts = [
            s.strip() for s in element.find_all(string=True, recursive=False) if s.strip()
        ]
        if not texts:
            continue
        candidate = texts[-1]
        if len(candidate) <= 1 or not LINK_TEXT_PATTERN.fullmatch(candidate):
            continue

        if PARENTHESIS_PATTERN.search(candidate):
            before = PARENTHESIS_PATTERN.split(candidate, maxsplit=1)[0].strip()
            if before:
                return before
        elif fallback is None:
            fallback = candidate

    return fallback


def nickname_from_known_names(text: str) -> Optional[str]:
    return _first_group(KNOWN_NAME_PATTERN, text)


# Priority order: first non-empty result wins
NICKNAME_STRATEGIES: List[Callable[[str], Optional[str]]] = [
    nickname_from_title_tag,
    nickname_from_h1,
    nickname_from_title_div,
    nickname_from_proxy_title,
    nickname_from_link_text,
    nickname_from_known_names,
]


def extract_avatar_url(text: str) -> Optional[str]:
    for pattern in AVATAR_PATTERNS:
        match = pattern.search(text)
        if match:
            return match.group(0)
    return None


def extract_nickname(text: str) -> Optional[str]:
    for strategy in NICKNAME_STRATEGIES:
        try:
            nickname = strategy(text)
        except Exception as e:
            logger.warning(f"Nickname strategy {strategy.__name__} failed: {e}")
            continue

        if nickname:
            logger.debug(
                f"Nickname found by {strategy.__name__}: {nickname}",
                extra={"strategy": strategy.__name__},
            )
            return nickname
    return None


def extract_blogger_info(text: str) -> BloggerInfo:
    """Extract nickname and avatar, falling back to defaults"""
    nickname = DEFAULT_NICKNAME
    avatar = DEFAULT_AVATAR

    if not isinstance(text, str) or not text:
        return BloggerInfo(nickname=nickname, avatar=avatar)

    nickname = extract_nickname(text) or DEFAULT_NICKNAME

    try:
        avatar = extract_avatar_url(text) or DEFAULT_AVATAR
    except Exception as e:
        logger.warning(f"Avatar extraction failed: {e}")

    logger.info(
        f"Extracted blogger info: {nickname}",
        extra={"nickname": nickname, "has_avatar": avatar != DEFAULT_AVATAR},
    )
    return BloggerInfo(nickname=nickname, avatar=avatar)
