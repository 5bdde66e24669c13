"""
Archive tree API endpoints.

Exposed endpoints:
- GET /api/funds - List funds with their inventories and cases
- POST /api/funds - Create fund
- GET|PATCH|DELETE /api/funds/{fund_id} - Read, update, delete fund
- POST /api/funds/{fund_id}/inventories - Create inventory
- GET|PATCH|DELETE /api/funds/{fund_id}/inventories/{inventory_id}
- POST /api/funds/{fund_id}/inventories/{inventory_id}/cases - Create case
- GET|PATCH|DELETE .../cases/{case_id}
- GET /api/archive/search?q= - Search case titles
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from apps.api.dependencies import get_archive_service, http_error
from archive.errors import ArchiveError
from archive.models import Case, Fund, Inventory
from archive.schemas import (
    CaseCreate,
    CaseSearchResult,
    CaseUpdate,
    CreatedResponse,
    FundCreate,
    FundUpdate,
    InventoryCreate,
    InventoryUpdate,
)
from archive.service import ArchiveService

router = APIRouter(prefix="/api", tags=["archive"])


def _fail(action: str, e: Exception) -> HTTPException:
    if isinstance(e, ArchiveError):
        return http_error(e)
    logger.error(f"[ARCHIVE] {action} error: {type(e).__name__}: {e}")
    return HTTPException(status_code=500, detail=f"Failed to {action}")


# ==================== FUNDS ====================

@router.get("/funds", response_model=List[Fund])
async def list_funds(service: ArchiveService = Depends(get_archive_service)):
    try:
        return service.list_funds()
    except Exception as e:
        raise _fail("list funds", e)


@router.post("/funds", response_model=CreatedResponse, status_code=201)
async def create_fund(data: FundCreate, service: ArchiveService = Depends(get_archive_service)):
    try:
        fund_id = service.create_fund(
            data.name, data.number, data.description, data.start_year, data.end_year
        )
        return CreatedResponse(id=fund_id)
    except Exception as e:
        raise _fail("create fund", e)


@router.get("/funds/{fund_id}", response_model=Fund)
async def get_fund(fund_id: str, service: ArchiveService = Depends(get_archive_service)):
    try:
        return service.get_fund(fund_id)
    except Exception as e:
        raise _fail("read fund", e)


@router.patch("/funds/{fund_id}", response_model=Fund)
async def update_fund(
    fund_id: str,
    data: FundUpdate,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.update_fund(fund_id, data)
    except Exception as e:
        raise _fail("update fund", e)


@router.delete("/funds/{fund_id}")
async def delete_fund(fund_id: str, service: ArchiveService = Depends(get_archive_service)):
    try:
        service.delete_fund(fund_id)
        return {"success": True, "message": "Fund deleted"}
    except Exception as e:
        raise _fail("delete fund", e)


# ==================== INVENTORIES ====================

@router.post("/funds/{fund_id}/inventories", response_model=CreatedResponse, status_code=201)
async def create_inventory(
    fund_id: str,
    data: InventoryCreate,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        inventory_id = service.create_inventory(fund_id, data.title, data.number, data.description)
        return CreatedResponse(id=inventory_id)
    except Exception as e:
        raise _fail("create inventory", e)


@router.get("/funds/{fund_id}/inventories/{inventory_id}", response_model=Inventory)
async def get_inventory(
    fund_id: str,
    inventory_id: str,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.get_inventory(fund_id, inventory_id)
    except Exception as e:
        raise _fail("read inventory", e)


@router.patch("/funds/{fund_id}/inventories/{inventory_id}", response_model=Inventory)
async def update_inventory(
    fund_id: str,
    inventory_id: str,
    data: InventoryUpdate,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.update_inventory(fund_id, inventory_id, data)
    except Exception as e:
        raise _fail("update inventory", e)


@router.delete("/funds/{fund_id}/inventories/{inventory_id}")
async def delete_inventory(
    fund_id: str,
    inventory_id: str,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        service.delete_inventory(fund_id, inventory_id)
        return {"success": True, "message": "Inventory deleted"}
    except Exception as e:
        raise _fail("delete inventory", e)


# ==================== CASES ====================

@router.post(
    "/funds/{fund_id}/inventories/{inventory_id}/cases",
    response_model=CreatedResponse,
    status_code=201,
)
async def create_case(
    fund_id: str,
    inventory_id: str,
    data: CaseCreate,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        case_id = service.create_case(
            fund_id, inventory_id, data.title, data.number, data.year, data.description
        )
        return CreatedResponse(id=case_id)
    except Exception as e:
        raise _fail("create case", e)


@router.get("/funds/{fund_id}/inventories/{inventory_id}/cases/{case_id}", response_model=Case)
async def get_case(
    fund_id: str,
    inventory_id: str,
    case_id: str,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.get_case(fund_id, inventory_id, case_id)
    except Exception as e:
        raise _fail("read case", e)


@router.patch("/funds/{fund_id}/inventories/{inventory_id}/cases/{case_id}", response_model=Case)
async def update_case(
    fund_id: str,
    inventory_id: str,
    case_id: str,
    data: CaseUpdate,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.update_case(fund_id, inventory_id, case_id, data)
    except Exception as e:
        raise _fail("update case", e)


@router.delete("/funds/{fund_id}/inventories/{inventory_id}/cases/{case_id}")
async def delete_case(
    fund_id: str,
    inventory_id: str,
    case_id: str,
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        service.delete_case(fund_id, inventory_id, case_id)
        return {"success": True, "message": "Case deleted"}
    except Exception as e:
        raise _fail("delete case", e)


# ==================== SEARCH ====================

@router.get("/archive/search", response_model=List[CaseSearchResult])
async def search_cases(
    q: str = Query("", max_length=200),
    service: ArchiveService = Depends(get_archive_service),
):
    try:
        return service.search_cases(q)
    except Exception as e:
        raise _fail("search cases", e)
