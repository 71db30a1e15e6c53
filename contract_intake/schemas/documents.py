from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class DocumentInfo(BaseModel):
    """Stored document metadata."""
    document_id: str
    tenant_id: str
    title: Optional[str] = None
    filename: str
    mime_type: str = "application/octet-stream"
    content_ref: str
    size: int = 0
    upload_date: datetime = Field(default_factory=datetime.now)


class ContractSummary(BaseModel):
    """An existing contract record a new upload may belong to."""
    contract_id: str
    tenant_id: str
    counterparty_name: str
    title: Optional[str] = None


class ContractCreate(BaseModel):
    """Request body for registering an existing contract."""
    counterparty_name: str = Field(min_length=1)
    title: Optional[str] = None


class UploadResponse(BaseModel):
    """Response model for file upload endpoints."""
    file_id: str
    filename: str
    content_type: Optional[str] = None
    size: int
    upload_date: datetime = Field(default_factory=datetime.now)
    status: str = "success"
    message: str = "File uploaded successfully"


class ErrorResponse(BaseModel):
    """Standard error response model."""
    status: str = "error"
    message: str
    detail: Optional[str] = None
