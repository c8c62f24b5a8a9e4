"""
Roast text formatting.

Generated roasts use a small line-oriented markup that the prompt asks the
model to follow:

- a line starting with `【` and containing `】` is a heading,
- `**text**` spans inside a line are bold,
- blank lines separate paragraphs.

There is no escaping: literal brackets or asterisks in model output are read
as markup. An odd trailing `**` is kept as a plain segment.
"""

import html
import re
from typing import List, Literal, Tuple

from pydantic import BaseModel

BLANK_RUN_PATTERN = re.compile(r"\n{3,}")

# Markers found in canned fallback/error roasts; used to keep them out of the feed
ERROR_ROAST_MARKERS = (
    "很抱歉，AI在生成吐槽时遇到了一些问题",
    "AI在生成吐槽时遇到了一些技术问题",
    "看起来出了点问题，但别担心",
    "处理请求时发生错误",
    "多次尝试生成吐槽均失败",
)


class RoastSegment(BaseModel):
    text: str
    bold: bool = False


class RoastBlock(BaseModel):
    kind: Literal["heading", "paragraph", "spacer"]
    segments: List[RoastSegment] = []

    @property
    def text(self) -> str:
        return "".join(segment.text for segment in self.segments)


def normalize_roast(text: str) -> str:
    """Collapse runs of three or more newlines to one blank line"""
    return BLANK_RUN_PATTERN.sub("\n\n", text or "")


def is_error_roast(text: str, min_length: int = 0) -> bool:
    """True for canned fallback texts and for roasts too short to be real"""
    if not text or len(text.strip()) < min_length:
        return True
    return any(marker in text for marker in ERROR_ROAST_MARKERS)


def split_bold(line: str) -> List[Tuple[str, bool]]:
    parts = line.split("**")
    if len(parts) % 2 == 0:
        # Unbalanced marker: the unclosed tail stays plain text
        parts[-2:] = [parts[-2] + "**" + parts[-1]]
    return [(part, index % 2 == 1) for index, part in enumerate(parts) if part]


def parse_roast(text: str) -> List[RoastBlock]:
    blocks: List[RoastBlock] = []

    for line in normalize_roast(text).split("\n"):
        if line.startswith("【") and "】" in line:
            blocks.append(
                RoastBlock(kind="heading", segments=[RoastSegment(text=line)])
            )
        elif line.count("**") >= 2:
            segments = [
                RoastSegment(text=part, bold=bold) for part, bold in split_bold(line)
            ]
            blocks.append(RoastBlock(kind="paragraph", segments=segments))
        elif line.strip():
            blocks.append(
                RoastBlock(kind="paragraph", segments=[RoastSegment(text=line)])
            )
        else:
            blocks.append(RoastBlock(kind="spacer"))

    return blocks


def render_roast_html(text: str) -> str:
    """Render roast markup as an escaped HTML fragment"""
    rendered = []
    for block in parse_roast(text):
        if block.kind == "heading":
            rendered.append(f'<h4 class="roast-heading">{html.escape(block.text)}</h4>')
        elif block.kind == "paragraph":
            inner = "".join(
                f"<strong>{html.escape(segment.text)}</strong>"
                if segment.bold
                else html.escape(segment.text)
                for segment in block.segments
            )
            rendered.append(f"<p>{inner}</p>")
        else:
            rendered.append('<div class="roast-spacer"></div>')
    return "\n".join(rendered)


def export_filename(nickname: str, timestamp_ms: int) -> str:
    """File name the client uses when saving the rendered card as an image"""
    safe_name = re.sub(r'[\\/:*?"<>|\s]+', "_", nickname or "未知博主")
    return f"小红书吐槽-{safe_name}-{timestamp_ms}.png"
