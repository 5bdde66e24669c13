"""
Document models.

A document is split in two parts that are stored separately:
- DocumentMetadata: kept together in the `archiveDocuments` list
- DocumentContent: one value per document under `archiveDocument:<id>`

Attachments are embedded as RFC 2397 data URLs.
"""

import base64
from urllib.parse import unquote_to_bytes
from datetime import datetime, timezone
from typing import List, Optional
import uuid

from pydantic import BaseModel, Field, field_validator

from archive.errors import ValidationFailedError


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


class Attachment(BaseModel):
    """A file embedded in a document as a data URL"""

    file_name: str
    name: str
    mime_type: str = "application/octet-stream"
    size: int = 0
    data_url: str

    @field_validator("data_url")
    @classmethod
    def validate_data_url(cls, v: str) -> str:
        if not v.startswith("data:"):
            raise ValueError("Attachment must be a data URL")
        return v

    @classmethod
    def from_bytes(
        cls,
        file_name: str,
        data: bytes,
        mime_type: str = "application/octet-stream",
        name: str = None,
    ) -> "Attachment":
        encoded = base64.b64encode(data).decode("ascii")
        return cls(
            file_name=file_name,
            name=name or file_name,
            mime_type=mime_type,
            size=len(data),
            data_url=f"data:{mime_type};base64,{encoded}",
        )

    def decode(self) -> bytes:
        """Return the raw bytes behind the data URL"""
        header, _, payload = self.data_url.partition(",")
        try:
            if header.endswith(";base64"):
                return base64.b64decode(payload, validate=True)
        except ValueError as e:
            raise ValidationFailedError(f"Attachment '{self.file_name}' has invalid base64 data") from e
        return unquote_to_bytes(payload)


class DocumentContent(BaseModel):
    text: str
    attachments: List[Attachment] = Field(default_factory=list)
    barcode: Optional[str] = None


class DocumentMetadata(BaseModel):
    id: str = Field(default_factory=new_id)
    title: str
    description: str
    fund_id: str
    inventory_id: str
    case_id: str
    created_at: str = Field(default_factory=utc_now_iso)
    updated_at: str = Field(default_factory=utc_now_iso)
    created_by: Optional[str] = None

    def is_under(
        self,
        fund_id: str,
        inventory_id: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> bool:
        """Whether the document's path lies under the given node"""
        if self.fund_id != fund_id:
            return False
        if inventory_id is not None and self.inventory_id != inventory_id:
            return False
        if case_id is not None and self.case_id != case_id:
            return False
        return True


class FullDocument(BaseModel):
    metadata: DocumentMetadata
    content: DocumentContent
