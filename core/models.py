"""
Core data models for the Roast API

Defines RoastRecord for database storage and BloggerInfo / FeedPage for
service results and API responses.
"""

import uuid
from typing import List, Optional
from sqlalchemy import Column, Text
from sqlmodel import SQLModel, Field
from pydantic import BaseModel

DEFAULT_NICKNAME = "未知博主"
DEFAULT_AVATAR = "/default-avatar.svg"


class BloggerInfo(BaseModel):
    """
    Display name and avatar recovered from a profile page.
    Immutable once extracted; embedded by value into stored records.
    """

    model_config = {"frozen": True}

    nickname: str = DEFAULT_NICKNAME
    avatar: str = DEFAULT_AVATAR


class RoastRecord(SQLModel, table=True):
    """
    A generated roast stored for sharing and the recent-activity feed.
    Records are written once and never updated.
    """

    id: str = Field(
        default_factory=lambda: uuid.uuid4().hex, primary_key=True, max_length=32
    )
    created_at: int = Field(index=True)  # epoch milliseconds
    nickname: str = Field(default=DEFAULT_NICKNAME, max_length=255)
    avatar: str = Field(default=DEFAULT_AVATAR, max_length=1024)
    roast: str = Field(sa_column=Column(Text, nullable=False))
    url: str = Field(max_length=2048)
    share_id: str = Field(unique=True, index=True, max_length=32)
    blogger_id: str = Field(index=True, max_length=255)

    @property
    def blogger(self) -> BloggerInfo:
        return BloggerInfo(nickname=self.nickname, avatar=self.avatar)


class FeedPage(BaseModel):
    """One page of the recent-activity feed"""

    roasts: List[RoastRecord]
    next_cursor: Optional[str] = None


class AnalysisResult(BaseModel):
    """
    Outcome of one run of the roast pipeline.
    `success` is authoritative; `is_error` marks a canned fallback roast.
    """

    success: bool
    roast: Optional[str] = None
    blogger: Optional[BloggerInfo] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    is_error: bool = False
    share_id: Optional[str] = None
    content: Optional[str] = None
