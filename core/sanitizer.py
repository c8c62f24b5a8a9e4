"""
Content sanitizer applied before text is sent to the completion API.

Strips navigation noise from the reader-proxy snapshot to cut token usage:
markdown images and links collapse to their label, bare URLs and query
fragments disappear and blank-line runs shrink to a single empty line.
"""

import logging
import re

logger = logging.getLogger(__name__)

# Order matters: images before links (so "![alt](u)" does not leave a stray
# "!"), links before bare URLs, image-transform markers before generic
# query strings.
SUBSTITUTIONS = [
    (re.compile(r"!\[([^\]]*)\]\([^)]+\)"), r"\1"),
    (re.compile(r"\[([^\]]+)\]\([^)]+\)"), r"\1"),
    (re.compile(r"https?://[^\s<>\"']+"), ""),
    (re.compile(r"\|imageView2[^\s<>\"']+"), ""),
    (re.compile(r"\?imageView2[^\s<>\"']+"), ""),
    (re.compile(r"\?[^\s<>\"']+"), ""),
    (re.compile(r"\n{3,}"), "\n\n"),
]


def _apply_once(text: str) -> str:
    for pattern, replacement in SUBSTITUTIONS:
        text = pattern.sub(replacement, text)
    return text


def clean_content_for_ai(content: str) -> str:
    """
    Return `content` with links, URLs and excess blank lines removed.

    Passes repeat until the text stops changing, which makes the function
    idempotent even for nested link syntax. Every pass that changes the text
    makes it strictly shorter, so the loop terminates.
    """
    if not content:
        return ""

    cleaned = content
    while True:
        next_pass = _apply_once(cleaned)
        if next_pass == cleaned:
            break
        cleaned = next_pass

    removed = len(content) - len(cleaned)
    logger.debug(
        f"Content cleaned: removed {removed} chars ({removed / len(content) * 100:.2f}%)",
        extra={"original_length": len(content), "cleaned_length": len(cleaned)},
    )
    return cleaned
