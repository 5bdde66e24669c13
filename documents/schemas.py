"""
Request schemas for the document endpoints and partial updates.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from documents.models import Attachment, DocumentContent, DocumentMetadata, FullDocument


class DocumentCreate(BaseModel):
    title: str = Field(..., max_length=255)
    description: str
    fund_id: str
    inventory_id: str
    case_id: str
    content: DocumentContent


class MetadataUpdate(BaseModel):
    """Editable metadata fields. Path, id and timestamps are fixed."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    description: Optional[str] = None


class ContentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    text: Optional[str] = None
    attachments: Optional[List[Attachment]] = None
    barcode: Optional[str] = None


class DocumentUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    metadata: Optional[MetadataUpdate] = None
    content: Optional[ContentUpdate] = None


class CaseView(BaseModel):
    """Everything the document-view page needs for one case"""

    fund_id: str
    fund_name: str
    inventory_id: str
    inventory_title: str
    case_id: str
    case_title: str
    documents: List[DocumentMetadata]
    selected: Optional[FullDocument] = None
