from fastapi import APIRouter, Depends, Request

from shared.security.dependencies import verify_internal_api_key

from .schemas import AuditReport
from .service import ConsistencyAuditor

# Operator-only: protected by the internal API key
router = APIRouter(dependencies=[Depends(verify_internal_api_key)])


def get_auditor(request: Request) -> ConsistencyAuditor:
    return request.app.state.auditor


@router.get("", response_model=AuditReport)
async def run_audit(auditor: ConsistencyAuditor = Depends(get_auditor)):
    violations = await auditor.run()
    return AuditReport(ok=not violations, violations=violations)
