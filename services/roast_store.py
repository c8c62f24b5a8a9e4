"""
Roast Persistence and Feed Service.

This module defines `RoastStore`, which writes generated roasts to the database
and serves the three read paths built on top of them: share-token lookup, a
blogger's roast history and the paginated recent-activity feed.

Key Components:
- `derive_blogger_id`: Computes the best-effort blogger key used for feed
  deduplication. It is neither verified nor guaranteed unique; a nickname
  change produces a different key for URLs without a `/user/` segment.
- `generate_share_id`: Produces the 10-character public share token.
- `RoastStore.save_roast`: Inserts a new record. Records are never updated or
  deleted by the application.
- `RoastStore.get_roast_by_share_id`: Point lookup on the unique `share_id`
  index.
- `RoastStore.get_recent_roasts`: Keyset-paginated feed, newest first. It
  over-fetches to make up for filtered and duplicate records and backfills in
  a bounded number of rounds.

Architectural Design:
- Session Per Operation: Each method opens its own session from the injected
  session factory, so the store can be pointed at any engine in tests.
- Error Surfacing: Database failures raise `PersistenceError`; the API layer
  decides whether that fails the request.
"""

import logging
import re
import secrets
import string
import time
from typing import List, Optional, Tuple
from urllib.parse import urlparse

from sqlalchemy import and_, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from core.database import async_session
from core.exceptions import PersistenceError, ValidationError
from core.formatting import is_error_roast
from core.logging_config import log_function_call
from core.models import BloggerInfo, FeedPage, RoastRecord

logger = logging.getLogger(__name__)

SHARE_ID_ALPHABET = string.ascii_letters + string.digits + "_-"
SHARE_ID_LENGTH = 10
BLOGGER_ID_MAX_LENGTH = 40
NICKNAME_MAX_LENGTH = 255
AVATAR_MAX_LENGTH = 1024
URL_MAX_LENGTH = 2048

USER_SEGMENT_PATTERN = re.compile(
    r"/user/(?:profile/)?(?!profile\b)([A-Za-z0-9_-]+)"
)
NON_ALNUM_PATTERN = re.compile(r"[^A-Za-z0-9\u4e00-\u9fa5]+")


def generate_share_id(length: int = SHARE_ID_LENGTH) -> str:
    return "".join(secrets.choice(SHARE_ID_ALPHABET) for _ in range(length))


def derive_blogger_id(url: str, nickname: str) -> str:
    """
    Derive the feed deduplication key for a profile URL.

    Uses the id after `/user/` (or `/user/profile/`) when present, otherwise
    host + path + nickname with separators folded to `_`, cut to 40 chars.
    """
    match = USER_SEGMENT_PATTERN.search(url or "")
    if match:
        return match.group(1)

    parsed = urlparse(url if "://" in (url or "") else f"https://{url or ''}")
    raw = f"{parsed.netloc}{parsed.path}{nickname or ''}"
    return NON_ALNUM_PATTERN.sub("_", raw).strip("_")[:BLOGGER_ID_MAX_LENGTH]


def encode_cursor(record: RoastRecord) -> str:
    return f"{record.created_at}_{record.id}"


def decode_cursor(cursor: str) -> Tuple[int, str]:
    created_at, sep, record_id = (cursor or "").partition("_")
    if not sep or not created_at.isdigit() or not record_id:
        raise ValidationError("cursor", cursor, "Invalid feed cursor")
    return int(created_at), record_id


class RoastStore:
    """Stores roasts and serves share lookups, history and the feed"""

    def __init__(
        self,
        session_factory=None,
        overfetch_factor: int = 3,
        max_rounds: int = 5,
        min_roast_length: int = 50,
    ):
        self.session_factory = session_factory or async_session
        self.overfetch_factor = overfetch_factor
        self.max_rounds = max_rounds
        self.min_roast_length = min_roast_length

    def is_feed_worthy(self, record: RoastRecord) -> bool:
        return not is_error_roast(record.roast, self.min_roast_length)

    @log_function_call(logger)
    async def save_roast(
        self, url: str, blogger: BloggerInfo, roast: str
    ) -> RoastRecord:
        """Insert a new roast record and return it with its share id"""
        record = RoastRecord(
            created_at=int(time.time() * 1000),
            nickname=blogger.nickname[:NICKNAME_MAX_LENGTH],
            avatar=blogger.avatar[:AVATAR_MAX_LENGTH],
            roast=roast,
            url=url[:URL_MAX_LENGTH],
            share_id=generate_share_id(),
            blogger_id=derive_blogger_id(url, blogger.nickname),
        )

        try:
            async with self.session_factory() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Error saving roast for {url}: {e}")
            raise PersistenceError("save_roast", str(e))

        logger.info(
            f"Saved roast {record.id}",
            extra={"share_id": record.share_id, "blogger_id": record.blogger_id},
        )
        return record

    async def get_roast_by_share_id(self, share_id: str) -> Optional[RoastRecord]:
        try:
            async with self.session_factory() as session:
                result = await session.exec(
                    select(RoastRecord).where(RoastRecord.share_id == share_id)
                )
                return result.first()
        except SQLAlchemyError as e:
            logger.error(f"Error looking up share id {share_id}: {e}")
            raise PersistenceError("get_roast_by_share_id", str(e))

    async def get_blogger_roast_history(
        self, blogger_id: str, limit: int = 10
    ) -> List[RoastRecord]:
        """Most recent feed-worthy roasts for one blogger"""
        try:
            async with self.session_factory() as session:
                result = await session.exec(
                    select(RoastRecord)
                    .where(RoastRecord.blogger_id == blogger_id)
                    .order_by(RoastRecord.created_at.desc(), RoastRecord.id.desc())
                    .limit(limit * self.overfetch_factor)
                )
                records = result.all()
        except SQLAlchemyError as e:
            logger.error(f"Error loading history for {blogger_id}: {e}")
            raise PersistenceError("get_blogger_roast_history", str(e))

        return [record for record in records if self.is_feed_worthy(record)][:limit]

    async def _fetch_batch(
        self, cursor: Optional[Tuple[int, str]], limit: int
    ) -> List[RoastRecord]:
        statement = select(RoastRecord)
        if cursor is not None:
            created_at, record_id = cursor
            statement = statement.where(
                or_(
                    RoastRecord.created_at < created_at,
                    and_(
                        RoastRecord.created_at == created_at,
                        RoastRecord.id < record_id,
                    ),
                )
            )
        statement = statement.order_by(
            RoastRecord.created_at.desc(), RoastRecord.id.desc()
        ).limit(limit)

        async with self.session_factory() as session:
            result = await session.exec(statement)
            return list(result.all())

    @log_function_call(logger)
    async def get_recent_roasts(
        self, cursor: Optional[str] = None, page_size: int = 10
    ) -> FeedPage:
        """
        One feed page, newest first, one record per blogger.

        Error-looking and too-short roasts are skipped. Deduplication applies
        within the page: the first (most recent) record per blogger wins.
        """
        position = decode_cursor(cursor) if cursor else None
        batch_size = page_size * self.overfetch_factor
        page: List[RoastRecord] = []
        seen_bloggers = set()
        last_consumed: Optional[RoastRecord] = None
        exhausted = False

        try:
            for round_number in range(1, self.max_rounds + 1):
                batch = await self._fetch_batch(position, batch_size)

                consumed = 0
                for record in batch:
                    consumed += 1
                    last_consumed = record
                    if not self.is_feed_worthy(record):
                        continue
                    if record.blogger_id in seen_bloggers:
                        continue
                    seen_bloggers.add(record.blogger_id)
                    page.append(record)
                    if len(page) >= page_size:
                        break

                exhausted = len(batch) < batch_size and consumed == len(batch)
                if len(page) >= page_size or exhausted:
                    break

                position = (last_consumed.created_at, last_consumed.id)
                logger.debug(
                    f"Feed page short after round {round_number}, backfilling",
                    extra={"collected": len(page), "page_size": page_size},
                )
        except SQLAlchemyError as e:
            logger.error(f"Error loading recent roasts: {e}")
            raise PersistenceError("get_recent_roasts", str(e))

        next_cursor = None
        if not exhausted and last_consumed is not None:
            next_cursor = encode_cursor(last_consumed)

        return FeedPage(roasts=page, next_cursor=next_cursor)
