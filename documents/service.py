"""
Business logic for documents.

Handles permission checks, case-path validation against the archive tree,
timestamp stamping, partial updates and the two lookups used by the
dashboard: free-text search and exact barcode search.
"""

from typing import List, Optional, Union

from loguru import logger
from pydantic import ValidationError

from archive.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from archive.repository import FundRepository
from auth.session import AuthSession
from documents.models import DocumentContent, DocumentMetadata, FullDocument, new_id, utc_now_iso
from documents.repository import DocumentRepository
from documents.schemas import ContentUpdate, MetadataUpdate
from security.audit.event_logger import AuditLogger
from security.policy.rbac import Permission, PermissionChecker, permission_checker


def _blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


class DocumentService:
    """
    Permission-gated document store.

    Example:
        service = DocumentService(DocumentRepository(store), session)
        doc_id = service.create_document("Letter", "desc", "f1", "i1", "c1",
                                         DocumentContent(text="...", barcode="12345"))
        service.search_documents_by_barcode("12345")
    """

    def __init__(
        self,
        repository: DocumentRepository,
        session: AuthSession,
        checker: PermissionChecker = None,
        archive: Optional[FundRepository] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._session = session
        self._checker = checker or permission_checker
        self._archive = archive
        self._audit = audit

    def _authorize(self, permission: Permission, action: str) -> None:
        try:
            self._checker.enforce(self._session.role, permission, action=action)
        except PermissionDeniedError:
            self._record(action, status="denied")
            raise

    def _record(self, action: str, target: Optional[str] = None, status: str = "success") -> None:
        if self._audit is not None:
            self._audit.record(self._session.user_id, action, target, status=status)

    def _require_case(self, fund_id: str, inventory_id: str, case_id: str) -> None:
        if self._archive is not None and not self._archive.case_exists(fund_id, inventory_id, case_id):
            raise NotFoundError("Case", case_id)

    # ==================== CREATE ====================

    def create_document(
        self,
        title: str,
        description: str,
        fund_id: str,
        inventory_id: str,
        case_id: str,
        content: Union[DocumentContent, dict],
    ) -> str:
        self._authorize(Permission.CREATE_DOCUMENT, "create document")

        try:
            if not isinstance(content, DocumentContent):
                content = DocumentContent.model_validate(content)
        except ValidationError as e:
            raise ValidationFailedError(f"Invalid document content: {e.errors()[0]['msg']}") from e

        missing = [
            name for name, value in (
                ("title", title), ("description", description), ("content.text", content.text)
            ) if _blank(value)
        ]
        if missing:
            raise ValidationFailedError(
                f"Required fields are empty: {', '.join(missing)}",
                detail={"fields": missing},
            )
        self._require_case(fund_id, inventory_id, case_id)

        now = utc_now_iso()
        metadata = DocumentMetadata(
            id=new_id(),
            title=title.strip(),
            description=description.strip(),
            fund_id=fund_id,
            inventory_id=inventory_id,
            case_id=case_id,
            created_at=now,
            updated_at=now,
            created_by=self._session.user_id,
        )
        if content.barcode is not None:
            content = content.model_copy(update={"barcode": content.barcode.strip() or None})

        self._repository.add(metadata, content)
        self._record("document_created", metadata.id)
        logger.info(f"[CREATE_DOCUMENT] Document '{metadata.title}' created in case {case_id}")
        return metadata.id

    # ==================== UPDATE / DELETE ====================

    def update_document(
        self,
        document_id: str,
        metadata: Union[MetadataUpdate, dict, None] = None,
        content: Union[ContentUpdate, dict, None] = None,
    ) -> FullDocument:
        """Merge partial metadata and content into an existing document"""
        self._authorize(Permission.EDIT_DOCUMENT, "update document")

        try:
            meta_changes = (
                MetadataUpdate.model_validate(metadata) if isinstance(metadata, dict) else metadata
            )
            content_changes = (
                ContentUpdate.model_validate(content) if isinstance(content, dict) else content
            )
        except ValidationError as e:
            raise ValidationFailedError(f"Invalid update: {e.errors()[0]['msg']}") from e

        meta_changes = meta_changes.model_dump(exclude_unset=True, exclude_none=True) if meta_changes else {}
        content_changes = content_changes.model_dump(exclude_unset=True) if content_changes else {}
        # barcode may be cleared with an explicit null, the other fields may not
        for field in ("text", "attachments"):
            if field in content_changes and content_changes[field] is None:
                del content_changes[field]

        for field in ("title", "description"):
            if field in meta_changes and _blank(meta_changes[field]):
                raise ValidationFailedError(f"Required fields are empty: {field}", detail={"fields": [field]})
        if "text" in content_changes and _blank(content_changes["text"]):
            raise ValidationFailedError("Required fields are empty: content.text", detail={"fields": ["content.text"]})
        if content_changes.get("barcode") is not None:
            content_changes["barcode"] = content_changes["barcode"].strip() or None

        current = self._repository.get_metadata(document_id)
        if current is None:
            raise NotFoundError("Document", document_id)

        updated_meta = current.model_copy(update={**meta_changes, "updated_at": utc_now_iso()})
        updated_content = None
        if content_changes:
            existing = self._repository.get_content(document_id) or DocumentContent(text="")
            merged = existing.model_dump()
            merged.update(content_changes)
            updated_content = DocumentContent.model_validate(merged)

        self._repository.replace(updated_meta, updated_content)
        self._record("document_updated", document_id)
        logger.info(f"[UPDATE_DOCUMENT] Document '{updated_meta.title}' updated")

        return FullDocument(
            metadata=updated_meta,
            content=updated_content or self._repository.get_content(document_id) or DocumentContent(text=""),
        )

    def delete_document(self, document_id: str) -> None:
        self._authorize(Permission.DELETE_DOCUMENT, "delete document")
        if not self._repository.remove(document_id):
            raise NotFoundError("Document", document_id)
        self._record("document_deleted", document_id)
        logger.info(f"[DELETE_DOCUMENT] Document {document_id} deleted")

    # ==================== READ ====================

    def list_documents(
        self,
        fund_id: Optional[str] = None,
        inventory_id: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> List[DocumentMetadata]:
        """All documents, or only those whose path matches every given id"""
        self._authorize(Permission.READ_DOCUMENT, "list documents")
        documents = self._repository.list()
        if fund_id is not None:
            documents = [d for d in documents if d.fund_id == fund_id]
        if inventory_id is not None:
            documents = [d for d in documents if d.inventory_id == inventory_id]
        if case_id is not None:
            documents = [d for d in documents if d.case_id == case_id]
        return documents

    def get_document(self, document_id: str) -> FullDocument:
        self._authorize(Permission.READ_DOCUMENT, "read document")
        metadata = self._repository.get_metadata(document_id)
        if metadata is None:
            raise NotFoundError("Document", document_id)
        content = self._repository.get_content(document_id)
        if content is None:
            logger.warning(f"[GET_DOCUMENT] Content missing for document {document_id}")
            content = DocumentContent(text="")
        return FullDocument(metadata=metadata, content=content)

    def search_documents(self, query: str) -> List[FullDocument]:
        """Case-insensitive substring match over title, description and text"""
        self._authorize(Permission.READ_DOCUMENT, "search documents")
        needle = (query or "").strip().lower()
        if not needle:
            return []

        results = []
        for metadata in self._repository.list():
            content = self._repository.get_content(metadata.id)
            text = content.text if content else ""
            haystack = (metadata.title, metadata.description, text)
            if any(needle in value.lower() for value in haystack):
                results.append(FullDocument(metadata=metadata, content=content or DocumentContent(text="")))
        return results

    def search_documents_by_barcode(self, barcode: str) -> List[FullDocument]:
        """Exact match on the stripped barcode; documents without one never match"""
        self._authorize(Permission.READ_DOCUMENT, "search by barcode")
        wanted = (barcode or "").strip()
        if not wanted:
            return []

        results = []
        for metadata in self._repository.list():
            content = self._repository.get_content(metadata.id)
            if content is not None and content.barcode and content.barcode == wanted:
                results.append(FullDocument(metadata=metadata, content=content))
        logger.info(f"[BARCODE] {len(results)} documents match '{wanted}'")
        return results
