from fastapi import APIRouter, Depends, HTTPException, status
import logging

from contract_intake.api.deps import RequestContext, get_request_context, get_services
from contract_intake.core.errors import AnalysisNotFound, DocumentNotFound, RecordCreationFailure
from contract_intake.pipeline.services import IntakeServices
from contract_intake.schemas.analysis import AnalysisView, SubmitResponse
from contract_intake.schemas.documents import ErrorResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post(
    "/documents/{document_id}",
    response_model=SubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def submit_analysis(
    document_id: str,
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """Queue metadata extraction for an uploaded document.

    Returns as soon as the analysis record exists; poll the status endpoint
    for the outcome.
    """
    try:
        record = await services.orchestrator.submit(document_id, context.user_id, context.tenant_id)
        return SubmitResponse(id=record.id, status=record.status, document_id=record.document_id)

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except RecordCreationFailure as e:
        logger.error(f"Error submitting analysis: {str(e)}")
        raise HTTPException(status_code=500, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error submitting analysis: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error submitting analysis: {str(e)}")


@router.get("/{analysis_id}", response_model=AnalysisView, responses={404: {"model": ErrorResponse}})
async def get_analysis(
    analysis_id: str,
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """Get the status and extracted fields of an analysis."""
    try:
        record = await services.orchestrator.get_status(analysis_id, tenant_id=context.tenant_id)
        return AnalysisView.from_record(record)

    except AnalysisNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting analysis {analysis_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting analysis: {str(e)}")
