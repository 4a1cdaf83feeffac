from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from shared.errors import http_status_for

from .schemas import AuthorizationApproved, AuthorizeRequest
from .service import AuthorizationWorkflow

router = APIRouter()


def get_authorization_workflow(request: Request) -> AuthorizationWorkflow:
    return request.app.state.authorization_workflow


@router.post("")
async def authorize(
    body: AuthorizeRequest,
    workflow: AuthorizationWorkflow = Depends(get_authorization_workflow),
):
    result = await workflow.authorize(body.order_id, body.customer, body.card, body.requested_amount)

    if isinstance(result, AuthorizationApproved):
        content = {
            "orderId": result.order_id,
            "status": result.status,
            "authorization": result.model_dump(
                mode="json", by_alias=True, include={"token", "masked_card", "amount"}
            ),
        }
        return JSONResponse(status_code=200, content=content)

    return JSONResponse(
        status_code=http_status_for(result.code),
        content=result.model_dump(mode="json", by_alias=True),
    )
