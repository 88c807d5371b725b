from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from tradescribe.journal.filters import build_filter
from tradescribe.journal.service import JournalService, create_service
from tradescribe.journal.trade_models import SearchCriteria
from tradescribe.utils.exceptions import ErrorCategory, JournalError
from tradescribe.utils.logger import get_logger

logger = get_logger(__name__)

_service: Optional[JournalService] = None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    yield
    if _service is not None:
        await _service.close()
        logger.info("journal_service_closed")


app = FastAPI(title="Trade Scribe Journal", version="1.0", lifespan=_lifespan)


def get_service() -> JournalService:
    global _service
    if _service is None:
        _service = create_service()
    return _service


def set_service(service: Optional[JournalService]) -> None:
    global _service
    _service = service


def _int_param(value: Any, default: Optional[int] = None) -> Optional[int]:
    """Positive integer from a query or body value; anything else gives the default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def _criteria(data: dict[str, Any]) -> SearchCriteria:
    try:
        return SearchCriteria.model_validate(data)
    except ValidationError as e:
        raise JournalError(f"Invalid filters: {e.error_count()} error(s)",
                           ErrorCategory.VALIDATION, 400) from e


@app.exception_handler(JournalError)
async def journal_error_handler(request: Request, exc: JournalError) -> JSONResponse:
    logger.warning("journal_request_rejected", path=request.url.path,
                   category=exc.category.value, error=exc.message)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code or 500)


@app.get("/api/trades")
async def list_trades(request: Request) -> dict[str, Any]:
    p = request.query_params
    criteria = _criteria({
        "status": p.get("status") or None,
        "tickers": [p["ticker"]] if p.get("ticker") else [],
        "sentiments": [p["sentiment"]] if p.get("sentiment") else [],
        "from": p.get("from") or None,
        "to": p.get("to") or None,
    })
    trades = get_service().list_trades(build_filter(criteria), sort_by="created_at", direction="desc",
                                       limit=_int_param(p.get("limit")))
    return {"trades": [t.to_dict() for t in trades]}


@app.post("/api/trades")
async def create_from_note(request: Request) -> dict[str, Any]:
    body = await request.json()
    result = await get_service().interpret_note(
        body.get("note") or "",
        attachments=body.get("attachments") or [],
        trade_id=body.get("tradeId"),
    )
    return {"action": result.action, "trade": result.trade.to_dict(), "reasoning": result.reasoning}


@app.get("/api/trades/{trade_id}")
async def get_trade(trade_id: str) -> dict[str, Any]:
    return {"trade": get_service().get_trade(trade_id).to_dict()}


@app.put("/api/trades/{trade_id}")
async def update_trade(request: Request, trade_id: str) -> dict[str, Any]:
    body = await request.json()
    trade = await get_service().update_trade(
        trade_id,
        updates=body.get("trade") or {},
        note=body.get("note"),
        attachments=body.get("attachments") or [],
        remove_attachment_ids=body.get("removeAttachmentIds") or [],
        reanalyze=bool(body.get("reanalyze")),
    )
    return {"trade": trade.to_dict()}


@app.delete("/api/trades/{trade_id}")
async def delete_trade(trade_id: str) -> dict[str, Any]:
    return {"ok": await get_service().delete_trade(trade_id)}


@app.post("/api/search")
async def search(request: Request) -> dict[str, Any]:
    body = await request.json()
    criteria = _criteria(body.get("filters") or {})
    result = await get_service().search(
        body.get("query") or "",
        criteria,
        limit=_int_param(body.get("limit")),
        include_answer=bool(body.get("includeAnswer")),
    )
    response: dict[str, Any] = {"results": [t.to_dict() for t in result.results]}
    if result.answer:
        response["answer"] = result.answer
    return response


@app.get("/api/analytics")
async def analytics(request: Request) -> dict[str, Any]:
    p = request.query_params
    criteria = _criteria({"from": p.get("from") or None, "to": p.get("to") or None})
    service = get_service()
    summary = service.analytics(
        criteria, limit=_int_param(p.get("limit"), service.settings.analytics_default_limit)
    )
    return {"analytics": summary.to_dict(), "count": summary.total_trades}
