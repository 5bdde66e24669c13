"""
Data access layer for documents.

Metadata for every document lives in one list under `archiveDocuments`;
the content of each document lives under its own `archiveDocument:<id>` key.
Content is written before metadata so the list never points at a document
without content.
"""

import logging
from typing import List, Optional

from pydantic import ValidationError

from documents.models import DocumentContent, DocumentMetadata
from storage.kv_store import DOCUMENTS_KEY, KeyValueStore, document_content_key

logger = logging.getLogger(__name__)


class DocumentRepository:
    """Repository for document metadata and content"""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self._metadata: List[DocumentMetadata] = []
        self.reload()

    def reload(self) -> List[DocumentMetadata]:
        raw = self._store.read_json(DOCUMENTS_KEY, [])
        try:
            if not isinstance(raw, list):
                raise ValueError(f"expected a list, got {type(raw).__name__}")
            self._metadata = [DocumentMetadata.model_validate(entry) for entry in raw]
        except (ValueError, ValidationError) as e:
            logger.error(f"Failed to parse stored document metadata, starting empty: {e}")
            self._metadata = []
        return self.list()

    def list(self) -> List[DocumentMetadata]:
        return [m.model_copy() for m in self._metadata]

    def count(self) -> int:
        return len(self._metadata)

    def get_metadata(self, document_id: str) -> Optional[DocumentMetadata]:
        for metadata in self._metadata:
            if metadata.id == document_id:
                return metadata.model_copy()
        return None

    def get_content(self, document_id: str) -> Optional[DocumentContent]:
        raw = self._store.read_json(document_content_key(document_id))
        if raw is None:
            return None
        try:
            return DocumentContent.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Corrupt content for document {document_id}: {e}")
            return None

    def _write_metadata(self, metadata: List[DocumentMetadata]) -> None:
        self._store.write_json(DOCUMENTS_KEY, [m.model_dump(mode="json") for m in metadata])
        self._metadata = metadata

    def _write_content(self, document_id: str, content: DocumentContent) -> None:
        self._store.write_json(document_content_key(document_id), content.model_dump(mode="json"))

    def add(self, metadata: DocumentMetadata, content: DocumentContent) -> DocumentMetadata:
        self._write_content(metadata.id, content)
        self._write_metadata(self._metadata + [metadata])
        logger.info(f"Stored document {metadata.id}")
        return metadata

    def replace(self, metadata: DocumentMetadata, content: Optional[DocumentContent] = None) -> None:
        """Overwrite an existing document's metadata and, if given, its content"""
        if content is not None:
            self._write_content(metadata.id, content)
        self._write_metadata([metadata if m.id == metadata.id else m for m in self._metadata])

    def remove(self, document_id: str) -> bool:
        remaining = [m for m in self._metadata if m.id != document_id]
        if len(remaining) == len(self._metadata):
            return False
        self._write_metadata(remaining)
        self._store.delete(document_content_key(document_id))
        logger.info(f"Removed document {document_id}")
        return True

    def purge(
        self,
        fund_id: str,
        inventory_id: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> int:
        """Remove every document under a fund, inventory or case; returns the count"""
        doomed = [m.id for m in self._metadata if m.is_under(fund_id, inventory_id, case_id)]
        if not doomed:
            return 0
        self._write_metadata([m for m in self._metadata if m.id not in doomed])
        for document_id in doomed:
            self._store.delete(document_content_key(document_id))
        logger.info(f"Purged {len(doomed)} documents under {fund_id}/{inventory_id}/{case_id}")
        return len(doomed)
