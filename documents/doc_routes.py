"""
Document API endpoints.

Exposed endpoints:
- GET /api/documents - List documents (filters: fund_id, inventory_id, case_id)
- POST /api/documents - Create document
- GET /api/documents/search?q= - Text search
- GET /api/documents/barcode/{barcode} - Exact barcode lookup
- GET|PATCH|DELETE /api/documents/{document_id}
- GET /api/documents/{document_id}/attachments/{index} - Inline attachment
- GET /api/view/{fund_id}/{inventory_id}/{case_id}?document_id= - Case view
"""

from typing import List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from loguru import logger

from apps.api.dependencies import get_archive_service, get_document_service, http_error
from archive.errors import ArchiveError, NotFoundError
from archive.service import ArchiveService
from documents.models import DocumentMetadata, FullDocument
from documents.schemas import CaseView, DocumentCreate, DocumentUpdate
from documents.service import DocumentService

router = APIRouter(prefix="/api", tags=["documents"])


def _fail(action: str, e: Exception) -> HTTPException:
    if isinstance(e, ArchiveError):
        return http_error(e)
    logger.error(f"[DOCUMENTS] {action} error: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")


def _inline_disposition(file_name: str) -> str:
    """RFC 6266 header: ASCII fallback name plus the UTF-8 name in filename*"""
    fallback = "".join(
        ch if 32 <= ord(ch) < 127 and ch not in '"\\' else "_" for ch in file_name
    )
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name, safe='')}"


@router.get("/documents", response_model=List[DocumentMetadata])
async def list_documents(
    fund_id: Optional[str] = None,
    inventory_id: Optional[str] = None,
    case_id: Optional[str] = None,
    service: DocumentService = Depends(get_document_service),
):
    try:
        return service.list_documents(fund_id, inventory_id, case_id)
    except Exception as e:
        raise _fail("list documents", e)


@router.post("/documents", status_code=201)
async def create_document(data: DocumentCreate, service: DocumentService = Depends(get_document_service)):
    try:
        document_id = service.create_document(
            data.title,
            data.description,
            data.fund_id,
            data.inventory_id,
            data.case_id,
            data.content,
        )
        return {"id": document_id}
    except Exception as e:
        raise _fail("create document", e)


@router.get("/documents/search", response_model=List[FullDocument])
async def search_documents(
    q: str = Query("", max_length=200),
    service: DocumentService = Depends(get_document_service),
):
    try:
        return service.search_documents(q)
    except Exception as e:
        raise _fail("search documents", e)


@router.get("/documents/barcode/{barcode}", response_model=List[FullDocument])
async def search_by_barcode(barcode: str, service: DocumentService = Depends(get_document_service)):
    try:
        return service.search_documents_by_barcode(barcode)
    except Exception as e:
        raise _fail("search by barcode", e)


@router.get("/documents/{document_id}", response_model=FullDocument)
async def get_document(document_id: str, service: DocumentService = Depends(get_document_service)):
    try:
        return service.get_document(document_id)
    except Exception as e:
        raise _fail("read document", e)


@router.patch("/documents/{document_id}", response_model=FullDocument)
async def update_document(
    document_id: str,
    data: DocumentUpdate,
    service: DocumentService = Depends(get_document_service),
):
    try:
        return service.update_document(document_id, metadata=data.metadata, content=data.content)
    except Exception as e:
        raise _fail("update document", e)


@router.delete("/documents/{document_id}")
async def delete_document(document_id: str, service: DocumentService = Depends(get_document_service)):
    try:
        service.delete_document(document_id)
        return {"success": True, "message": "Document deleted"}
    except Exception as e:
        raise _fail("delete document", e)


@router.get("/documents/{document_id}/attachments/{index}")
async def view_attachment(
    document_id: str,
    index: int,
    service: DocumentService = Depends(get_document_service),
):
    """
    Return an attachment inline without a download prompt.
    """
    try:
        document = service.get_document(document_id)
        attachments = document.content.attachments
        if index < 0 or index >= len(attachments):
            raise NotFoundError("Attachment", str(index))

        attachment = attachments[index]
        logger.info(f"[VIEW] Attachment {attachment.file_name} of document {document_id}")
        return Response(
            content=attachment.decode(),
            media_type=attachment.mime_type,
            headers={
                "Content-Disposition": _inline_disposition(attachment.file_name),
                "X-Content-Type-Options": "nosniff",
            },
        )
    except Exception as e:
        raise _fail("view attachment", e)


@router.get("/view/{fund_id}/{inventory_id}/{case_id}", response_model=CaseView)
async def view_case(
    fund_id: str,
    inventory_id: str,
    case_id: str,
    document_id: Optional[str] = None,
    archive: ArchiveService = Depends(get_archive_service),
    service: DocumentService = Depends(get_document_service),
):
    """Case context, its documents, and the selected document if any."""
    try:
        fund = archive.get_fund(fund_id)
        inventory = archive.get_inventory(fund_id, inventory_id)
        case = archive.get_case(fund_id, inventory_id, case_id)
        documents = service.list_documents(fund_id, inventory_id, case_id)

        selected = None
        if document_id:
            if not any(d.id == document_id for d in documents):
                raise NotFoundError("Document", document_id)
            selected = service.get_document(document_id)

        return CaseView(
            fund_id=fund.id,
            fund_name=fund.name,
            inventory_id=inventory.id,
            inventory_title=inventory.title,
            case_id=case.id,
            case_title=case.title,
            documents=documents,
            selected=selected,
        )
    except Exception as e:
        raise _fail("load case view", e)
