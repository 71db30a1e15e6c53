import asyncio
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from typing import List, Optional
import logging

from contract_intake.api.deps import RequestContext, get_request_context, get_services
from contract_intake.core.errors import DocumentNotFound
from contract_intake.pipeline.services import IntakeServices
from contract_intake.schemas.documents import DocumentInfo, UploadResponse

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/upload", response_model=UploadResponse)
async def upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """Upload a contract document.

    Args:
        file: Contract file
        title: Optional document title

    Returns:
        Upload response with the document ID
    """
    try:
        try:
            contents = await file.read()
        except Exception as e:
            raise HTTPException(
                status_code=400,
                detail=f"Error reading file: {str(e)}"
            )

        if not contents:
            raise HTTPException(status_code=400, detail="Uploaded file is empty")

        info = await asyncio.to_thread(
            services.document_store.save,
            context.tenant_id,
            file.filename,
            contents,
            file.content_type,
            title,
        )

        return UploadResponse(
            file_id=info.document_id,
            filename=info.filename,
            content_type=info.mime_type,
            size=info.size,
            upload_date=info.upload_date,
            status="success",
            message="Document uploaded successfully"
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error uploading document: {str(e)}")
        raise HTTPException(
            status_code=500,
            detail=f"Error uploading document: {str(e)}"
        )


@router.get("/", response_model=List[DocumentInfo])
async def list_documents(
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """List the documents uploaded by the caller's tenant."""
    try:
        return await asyncio.to_thread(services.document_store.list, context.tenant_id)
    except Exception as e:
        logger.error(f"Error listing documents: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error listing documents: {str(e)}")


@router.get("/{document_id}", response_model=DocumentInfo)
async def get_document(
    document_id: str,
    context: RequestContext = Depends(get_request_context),
    services: IntakeServices = Depends(get_services),
):
    """Get metadata of an uploaded document."""
    try:
        info = await asyncio.to_thread(services.document_store.get, document_id)
        if info.tenant_id != context.tenant_id:
            raise DocumentNotFound(document_id)
        return info

    except DocumentNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting document {document_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Error getting document: {str(e)}")
