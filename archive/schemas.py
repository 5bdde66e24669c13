"""
Pydantic schemas for archive tree requests and partial updates.

Update schemas forbid unknown fields, so `id` and child collections can
never be overwritten through an update.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# ============ Create Schemas ============

class FundCreate(BaseModel):
    name: str = Field(..., max_length=255)
    number: str = Field(..., max_length=64)
    description: str = ""
    start_year: str = ""
    end_year: str = ""


class InventoryCreate(BaseModel):
    title: str = Field(..., max_length=255)
    number: str = Field(..., max_length=64)
    description: str = ""


class CaseCreate(BaseModel):
    title: str = Field(..., max_length=255)
    number: str = Field(..., max_length=64)
    year: str = ""
    description: str = ""


# ============ Update Schemas ============

class FundUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    number: Optional[str] = None
    description: Optional[str] = None
    start_year: Optional[str] = None
    end_year: Optional[str] = None


class InventoryUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    number: Optional[str] = None
    description: Optional[str] = None


class CaseUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    number: Optional[str] = None
    year: Optional[str] = None
    description: Optional[str] = None


# ============ Response Schemas ============

class CreatedResponse(BaseModel):
    id: str


class CaseSearchResult(BaseModel):
    """One hit of the case-title search, with the path needed to open it"""

    fund_id: str
    inventory_id: str
    case_id: str
    title: str
