import asyncio
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List
import logging

from contract_intake.api.deps import RequestContext, get_request_context, get_services
from contract_intake.pipeline.services import IntakeServices
from contract_intake.schemas.documents import ContractCreate, ContractSummary

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/", response_model=ContractSummary, status_code=status.HTTP_201_CREATED)
async def register_contract(
    contract: ContractCreate,
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """Register an existing contract so new uploads can be matched to it."""
    try:
        return await asyncio.to_thread(
            services.contract_registry.register,
            context.tenant_id,
            contract.counterparty_name,
            contract.title,
        )
    except Exception as e:
        logger.error(f"Error registering contract: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error registering contract: {str(e)}")


@router.get("/", response_model=List[ContractSummary])
async def list_contracts(
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """List registered contracts of the caller's tenant."""
    try:
        return await asyncio.to_thread(services.contract_registry.list, context.tenant_id)
    except Exception as e:
        logger.error(f"Error listing contracts: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing contracts: {str(e)}")
