from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request

from contract_intake.core.config import settings
from contract_intake.pipeline.services import IntakeServices


@dataclass
class RequestContext:
    """Caller identity taken from request headers. Not authenticated."""
    user_id: str
    tenant_id: str


def get_services(request: Request) -> IntakeServices:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def get_request_context(
    x_user_id: Optional[str] = Header(default=None),
    x_tenant_id: Optional[str] = Header(default=None),
) -> RequestContext:
    return RequestContext(
        user_id=x_user_id or settings.DEFAULT_USER_ID,
        tenant_id=x_tenant_id or settings.DEFAULT_TENANT_ID,
    )
