from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.errors import http_status_for

from .schemas import SettlementAccepted, SettlementRequest
from .service import SettlementEngine

router = APIRouter()


def get_settlement_engine(request: Request) -> SettlementEngine:
    return request.app.state.settlement_engine


@router.post("")
async def settle(body: SettlementRequest, engine: SettlementEngine = Depends(get_settlement_engine)):
    result = await engine.settle(body.order_id, body.amount)

    if isinstance(result, SettlementAccepted):
        return JSONResponse(status_code=200, content=result.model_dump(mode="json", by_alias=True))

    return JSONResponse(
        status_code=http_status_for(result.code),
        content=result.model_dump(mode="json", by_alias=True, exclude_none=True),
    )
