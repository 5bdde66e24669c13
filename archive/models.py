"""
Archive tree models.

A Fund owns an ordered list of Inventories, an Inventory owns an ordered
list of Cases. The whole tree is persisted as one JSON list of funds.
Documents live in their own store and reference cases by id.
"""

from typing import List, Optional
import uuid

from pydantic import BaseModel, Field


def new_id() -> str:
    return str(uuid.uuid4())


class Case(BaseModel):
    """Folder-level grouping within an inventory"""

    id: str = Field(default_factory=new_id)
    title: str
    number: str
    year: str = ""
    description: str = ""


class Inventory(BaseModel):
    """Named sub-grouping within a fund"""

    id: str = Field(default_factory=new_id)
    title: str
    number: str
    description: str = ""
    cases: List[Case] = Field(default_factory=list)

    def find_case(self, case_id: str) -> Optional[Case]:
        return next((c for c in self.cases if c.id == case_id), None)


class Fund(BaseModel):
    """Top-level archival grouping"""

    id: str = Field(default_factory=new_id)
    name: str
    number: str = Field(..., description="Registry number, e.g. 'F.1'")
    description: str = ""
    start_year: str = ""
    end_year: str = ""
    inventories: List[Inventory] = Field(default_factory=list)

    def find_inventory(self, inventory_id: str) -> Optional[Inventory]:
        return next((i for i in self.inventories if i.id == inventory_id), None)
