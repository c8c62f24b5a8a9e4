"""
API Endpoints for the Roast API.

This module defines the REST endpoints that run the roast pipeline and expose
stored roasts.

Endpoints Provided:
- `POST /api/analyze`: Full pipeline for one profile URL.
- `POST /api/fetch`: First phase of the split pipeline (fetch and extract).
- `POST /api/generate`: Second phase of the split pipeline (generate).
- `GET /api/test`: Diagnostic; reports credential presence and pings the
  completion API.
- `POST /api/roasts`: Save a roast and receive its share id.
- `GET /api/roasts`: Recent-activity feed, cursor paginated.
- `GET /api/share/{share_id}`: One stored roast, with rendered HTML.
- `GET /api/bloggers/{blogger_id}/roasts`: Roast history for one blogger.

Response Contract:
- Pipeline endpoints always answer 200. `success` is authoritative, and on
  failure `errorCode` carries the machine-readable reason next to the
  human-readable `error`. A canned roast may still be present, flagged by
  `isError`.
- Invalid input, unknown share ids and storage failures raise
  `RoastAPIException` subclasses, rendered with real status codes by the
  exception handler registered in `main.py`.
"""

import logging
from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.config import get_settings
from core.exceptions import RoastAPIException, ShareNotFoundError, ValidationError
from core.formatting import export_filename, is_error_roast, render_roast_html
from core.logging_config import log_function_call
from core.models import AnalysisResult, BloggerInfo, RoastRecord
from core.prompts import SYSTEM_ERROR_ROAST_TEMPLATE
from providers.llm_provider import CompletionProvider
from services.roast_service import RoastService
from services.roast_store import RoastStore
from .dependencies import get_completion_provider, get_roast_service, get_roast_store

logger = logging.getLogger(__name__)


router = APIRouter(prefix="/api", tags=["Roasts"])


# Request/Response Models
class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AnalyzeRequest(BaseModel):
    url: str


class GenerateRequest(BaseModel):
    html: str
    blogger: Optional[BloggerInfo] = None


class SaveRoastRequest(BaseModel):
    url: str
    blogger: BloggerInfo
    roast: str


class AnalyzeResponse(ApiModel):
    success: bool
    roast: Optional[str] = None
    blogger: Optional[BloggerInfo] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None
    is_error: bool = False
    share_id: Optional[str] = None

    @classmethod
    def from_result(cls, result: AnalysisResult) -> "AnalyzeResponse":
        return cls(
            success=result.success,
            roast=result.roast,
            blogger=result.blogger,
            error=result.error,
            error_code=result.error_code,
            error_detail=result.error_detail,
            is_error=result.is_error,
            share_id=result.share_id,
        )


class FetchResponse(ApiModel):
    success: bool
    html: Optional[str] = None
    blogger: Optional[BloggerInfo] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_detail: Optional[str] = None


class RoastOut(ApiModel):
    id: str
    created_at: int
    blogger: BloggerInfo
    roast: str
    url: str
    share_id: str
    blogger_id: str

    @classmethod
    def from_record(cls, record: RoastRecord) -> "RoastOut":
        return cls(
            id=record.id,
            created_at=record.created_at,
            blogger=record.blogger,
            roast=record.roast,
            url=record.url,
            share_id=record.share_id,
            blogger_id=record.blogger_id,
        )


class ShareResponse(RoastOut):
    html: str
    export_filename: str


class FeedResponse(ApiModel):
    roasts: List[RoastOut]
    next_cursor: Optional[str] = None


class HistoryResponse(ApiModel):
    roasts: List[RoastOut]


class SaveRoastResponse(ApiModel):
    success: bool
    share_id: str
    id: str


def system_error_response(error: Exception) -> AnalyzeResponse:
    return AnalyzeResponse(
        success=False,
        error=str(error) or "处理请求过程中发生未知错误",
        error_code="INTERNAL_ERROR",
        error_detail=type(error).__name__,
        roast=SYSTEM_ERROR_ROAST_TEMPLATE.format(detail=str(error) or "未知错误"),
        is_error=True,
    )


# Pipeline Endpoints
@router.post(
    "/analyze", response_model=AnalyzeResponse, response_model_exclude_none=True
)
async def analyze_profile(
    request: AnalyzeRequest, roast_svc: RoastService = Depends(get_roast_service)
):
    """Fetch a profile, extract the blogger and generate a roast"""
    logger.info(f"Analyze request for: {request.url}")
    try:
        result = await roast_svc.analyze(request.url)
    except RoastAPIException:
        raise
    except Exception as e:
        logger.error(f"Unhandled error in analyze pipeline: {e}", exc_info=True)
        return system_error_response(e)

    return AnalyzeResponse.from_result(result)


@router.post("/fetch", response_model=FetchResponse, response_model_exclude_none=True)
async def fetch_profile(
    request: AnalyzeRequest, roast_svc: RoastService = Depends(get_roast_service)
):
    """Fetch a profile and extract the blogger, without generating"""
    result = await roast_svc.fetch(request.url)
    return FetchResponse(
        success=result.success,
        html=result.content,
        blogger=result.blogger,
        error=result.error,
        error_code=result.error_code,
        error_detail=result.error_detail,
    )


@router.post(
    "/generate", response_model=AnalyzeResponse, response_model_exclude_none=True
)
async def generate_roast(
    request: GenerateRequest, roast_svc: RoastService = Depends(get_roast_service)
):
    """Generate a roast from previously fetched content"""
    result = await roast_svc.generate(request.html, request.blogger)
    return AnalyzeResponse.from_result(result)


@router.get("/test")
async def api_self_test(
    provider: CompletionProvider = Depends(get_completion_provider),
):
    """Report whether a completion API key is configured and ping the API"""
    api_test = await provider.check_connectivity()
    return {
        "env": {
            "environment": get_settings().environment,
            "hasApiKey": provider.has_credentials,
            "apiKeyPrefix": provider.api_key_prefix,
        },
        "apiTest": api_test,
        "timestamp": datetime.utcnow().isoformat(),
    }


# Stored Roast Endpoints
@router.post("/roasts", response_model=SaveRoastResponse)
@log_function_call(logger)
async def save_roast(
    request: SaveRoastRequest,
    roast_svc: RoastService = Depends(get_roast_service),
    store: RoastStore = Depends(get_roast_store),
):
    """Save a roast for sharing and the recent-activity feed"""
    url = roast_svc.validate_url(request.url)
    if is_error_roast(request.roast):
        raise ValidationError("roast", request.roast[:50], "吐槽内容无效，无法保存")

    record = await store.save_roast(url, request.blogger, request.roast)
    return SaveRoastResponse(success=True, share_id=record.share_id, id=record.id)


@router.get("/roasts", response_model=FeedResponse)
async def get_recent_roasts(
    cursor: Optional[str] = None,
    limit: Optional[int] = Query(None, ge=1, le=50),
    store: RoastStore = Depends(get_roast_store),
):
    """Recent roasts, newest first, one per blogger"""
    page = await store.get_recent_roasts(
        cursor=cursor, page_size=limit or get_settings().feed_page_size
    )
    return FeedResponse(
        roasts=[RoastOut.from_record(record) for record in page.roasts],
        next_cursor=page.next_cursor,
    )


@router.get("/share/{share_id}", response_model=ShareResponse)
async def get_shared_roast(
    share_id: str, store: RoastStore = Depends(get_roast_store)
):
    """Look up a roast by its public share id"""
    record = await store.get_roast_by_share_id(share_id)
    if record is None:
        raise ShareNotFoundError(share_id)

    base = RoastOut.from_record(record)
    return ShareResponse(
        **base.model_dump(),
        html=render_roast_html(record.roast),
        export_filename=export_filename(record.nickname, record.created_at),
    )


@router.get("/bloggers/{blogger_id}/roasts", response_model=HistoryResponse)
async def get_blogger_history(
    blogger_id: str,
    limit: Optional[int] = Query(None, ge=1, le=50),
    store: RoastStore = Depends(get_roast_store),
):
    """Roast history for one derived blogger id"""
    records = await store.get_blogger_roast_history(
        blogger_id, limit=limit or get_settings().history_limit
    )
    return HistoryResponse(roasts=[RoastOut.from_record(record) for record in records])
