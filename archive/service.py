"""
Business logic for the archive tree.

The service layer sits between the API endpoints and the FundRepository.
It handles:
- Permission checks before any mutation
- Locating nodes by their fund/inventory/case path
- Validating required fields and partial updates
- Cascading deletes into the document store
"""

from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from loguru import logger
from pydantic import BaseModel, ValidationError

from archive.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from archive.models import Case, Fund, Inventory, new_id
from archive.repository import FundRepository
from archive.schemas import CaseSearchResult, CaseUpdate, FundUpdate, InventoryUpdate
from auth.session import AuthSession
from security.audit.event_logger import AuditLogger
from security.policy.rbac import Permission, PermissionChecker, permission_checker

if TYPE_CHECKING:
    from documents.repository import DocumentRepository


def _require_fields(**fields: Optional[str]) -> None:
    missing = [name for name, value in fields.items() if value is None or not str(value).strip()]
    if missing:
        raise ValidationFailedError(
            f"Required fields are empty: {', '.join(missing)}",
            detail={"fields": missing},
        )


def _parse_updates(schema: type, updates: Union[BaseModel, dict]) -> dict:
    """Validate a partial update and return only the fields actually provided"""
    try:
        if not isinstance(updates, schema):
            updates = schema.model_validate(updates)
    except ValidationError as e:
        raise ValidationFailedError(f"Invalid update: {e.errors()[0]['msg']}") from e
    changes = updates.model_dump(exclude_unset=True, exclude_none=True)
    return {k: v.strip() if isinstance(v, str) else v for k, v in changes.items()}


def _locate(
    funds: List[Fund],
    fund_id: str,
    inventory_id: Optional[str] = None,
    case_id: Optional[str] = None,
) -> Tuple[Fund, Optional[Inventory], Optional[Case]]:
    """Walk the path, raising NotFoundError on the first missing segment"""
    fund = next((f for f in funds if f.id == fund_id), None)
    if fund is None:
        raise NotFoundError("Fund", fund_id)
    if inventory_id is None:
        return fund, None, None

    inventory = fund.find_inventory(inventory_id)
    if inventory is None:
        raise NotFoundError("Inventory", inventory_id)
    if case_id is None:
        return fund, inventory, None

    case = inventory.find_case(case_id)
    if case is None:
        raise NotFoundError("Case", case_id)
    return fund, inventory, case


class ArchiveService:
    """
    Permission-gated CRUD over funds, inventories and cases.

    Example:
        service = ArchiveService(FundRepository(store), session)
        fund_id = service.create_fund("Archive A", "F.9", "desc", "1900", "1999")
        service.update_fund(fund_id, {"name": "Archive B"})
        service.delete_fund(fund_id)
    """

    def __init__(
        self,
        repository: FundRepository,
        session: AuthSession,
        checker: PermissionChecker = None,
        documents: Optional["DocumentRepository"] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self._repository = repository
        self._session = session
        self._checker = checker or permission_checker
        self._documents = documents
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

    # ==================== READ ====================

    def list_funds(self) -> List[Fund]:
        self._authorize(Permission.READ_DOCUMENT, "list funds")
        return self._repository.funds

    def get_fund(self, fund_id: str) -> Fund:
        self._authorize(Permission.READ_DOCUMENT, "read fund")
        fund, _, _ = _locate(self._repository.funds, fund_id)
        return fund

    def get_inventory(self, fund_id: str, inventory_id: str) -> Inventory:
        self._authorize(Permission.READ_DOCUMENT, "read inventory")
        _, inventory, _ = _locate(self._repository.funds, fund_id, inventory_id)
        return inventory

    def get_case(self, fund_id: str, inventory_id: str, case_id: str) -> Case:
        self._authorize(Permission.READ_DOCUMENT, "read case")
        _, _, case = _locate(self._repository.funds, fund_id, inventory_id, case_id)
        return case

    def search_cases(self, query: str) -> List[CaseSearchResult]:
        """Case-insensitive substring search over case titles"""
        self._authorize(Permission.READ_DOCUMENT, "search cases")
        needle = (query or "").strip().lower()
        if not needle:
            return []

        results = []
        for fund in self._repository.funds:
            for inventory in fund.inventories:
                for case in inventory.cases:
                    if needle in case.title.lower():
                        results.append(CaseSearchResult(
                            fund_id=fund.id,
                            inventory_id=inventory.id,
                            case_id=case.id,
                            title=f"{fund.number} - {inventory.number} - {case.number}: {case.title}",
                        ))
        return results

    # ==================== FUNDS ====================

    def create_fund(
        self,
        name: str,
        number: str,
        description: str = "",
        start_year: str = "",
        end_year: str = "",
    ) -> str:
        self._authorize(Permission.EDIT_DOCUMENT, "create fund")
        _require_fields(name=name, number=number)

        funds = self._repository.snapshot()
        fund = Fund(
            id=new_id(),
            name=name.strip(),
            number=number.strip(),
            description=description or "",
            start_year=start_year or "",
            end_year=end_year or "",
        )
        funds.append(fund)
        self._repository.save(funds)

        self._record("fund_created", fund.id)
        logger.info(f"[CREATE_FUND] Fund '{fund.name}' created ({fund.id})")
        return fund.id

    def update_fund(self, fund_id: str, updates: Union[FundUpdate, dict]) -> Fund:
        self._authorize(Permission.EDIT_DOCUMENT, "update fund")
        changes = _parse_updates(FundUpdate, updates)
        _require_fields(**{k: v for k, v in changes.items() if k in ("name", "number")})

        funds = self._repository.snapshot()
        fund, _, _ = _locate(funds, fund_id)
        for key, value in changes.items():
            setattr(fund, key, value)
        self._repository.save(funds)

        self._record("fund_updated", fund_id)
        logger.info(f"[UPDATE_FUND] Fund '{fund.name}' updated")
        return fund

    def delete_fund(self, fund_id: str) -> None:
        self._authorize(Permission.DELETE_DOCUMENT, "delete fund")

        funds = self._repository.snapshot()
        fund, _, _ = _locate(funds, fund_id)
        purged = self._purge_documents(fund_id)
        self._repository.save([f for f in funds if f.id != fund_id])

        self._record("fund_deleted", fund_id)
        logger.info(f"[DELETE_FUND] Fund '{fund.name}' deleted with {purged} documents")

    # ==================== INVENTORIES ====================

    def create_inventory(self, fund_id: str, title: str, number: str, description: str = "") -> str:
        self._authorize(Permission.EDIT_DOCUMENT, "create inventory")

        funds = self._repository.snapshot()
        fund, _, _ = _locate(funds, fund_id)
        _require_fields(title=title, number=number)

        inventory = Inventory(
            id=new_id(),
            title=title.strip(),
            number=number.strip(),
            description=description or "",
        )
        fund.inventories.append(inventory)
        self._repository.save(funds)

        self._record("inventory_created", inventory.id)
        logger.info(f"[CREATE_INVENTORY] Inventory '{inventory.title}' created in fund '{fund.name}'")
        return inventory.id

    def update_inventory(
        self,
        fund_id: str,
        inventory_id: str,
        updates: Union[InventoryUpdate, dict],
    ) -> Inventory:
        self._authorize(Permission.EDIT_DOCUMENT, "update inventory")
        changes = _parse_updates(InventoryUpdate, updates)
        _require_fields(**{k: v for k, v in changes.items() if k in ("title", "number")})

        funds = self._repository.snapshot()
        _, inventory, _ = _locate(funds, fund_id, inventory_id)
        for key, value in changes.items():
            setattr(inventory, key, value)
        self._repository.save(funds)

        self._record("inventory_updated", inventory_id)
        logger.info(f"[UPDATE_INVENTORY] Inventory '{inventory.title}' updated")
        return inventory

    def delete_inventory(self, fund_id: str, inventory_id: str) -> None:
        self._authorize(Permission.DELETE_DOCUMENT, "delete inventory")

        funds = self._repository.snapshot()
        fund, inventory, _ = _locate(funds, fund_id, inventory_id)
        purged = self._purge_documents(fund_id, inventory_id)
        fund.inventories = [i for i in fund.inventories if i.id != inventory_id]
        self._repository.save(funds)

        self._record("inventory_deleted", inventory_id)
        logger.info(
            f"[DELETE_INVENTORY] Inventory '{inventory.title}' deleted from fund "
            f"'{fund.name}' with {purged} documents"
        )

    # ==================== CASES ====================

    def create_case(
        self,
        fund_id: str,
        inventory_id: str,
        title: str,
        number: str,
        year: str = "",
        description: str = "",
    ) -> str:
        self._authorize(Permission.EDIT_DOCUMENT, "create case")

        funds = self._repository.snapshot()
        _, inventory, _ = _locate(funds, fund_id, inventory_id)
        _require_fields(title=title, number=number)

        case = Case(
            id=new_id(),
            title=title.strip(),
            number=number.strip(),
            year=year or "",
            description=description or "",
        )
        inventory.cases.append(case)
        self._repository.save(funds)

        self._record("case_created", case.id)
        logger.info(f"[CREATE_CASE] Case '{case.title}' created in inventory '{inventory.title}'")
        return case.id

    def update_case(
        self,
        fund_id: str,
        inventory_id: str,
        case_id: str,
        updates: Union[CaseUpdate, dict],
    ) -> Case:
        self._authorize(Permission.EDIT_DOCUMENT, "update case")
        changes = _parse_updates(CaseUpdate, updates)
        _require_fields(**{k: v for k, v in changes.items() if k in ("title", "number")})

        funds = self._repository.snapshot()
        _, _, case = _locate(funds, fund_id, inventory_id, case_id)
        for key, value in changes.items():
            setattr(case, key, value)
        self._repository.save(funds)

        self._record("case_updated", case_id)
        logger.info(f"[UPDATE_CASE] Case '{case.title}' updated")
        return case

    def delete_case(self, fund_id: str, inventory_id: str, case_id: str) -> None:
        self._authorize(Permission.DELETE_DOCUMENT, "delete case")

        funds = self._repository.snapshot()
        _, inventory, case = _locate(funds, fund_id, inventory_id, case_id)
        purged = self._purge_documents(fund_id, inventory_id, case_id)
        inventory.cases = [c for c in inventory.cases if c.id != case_id]
        self._repository.save(funds)

        self._record("case_deleted", case_id)
        logger.info(f"[DELETE_CASE] Case '{case.title}' deleted with {purged} documents")

    def _purge_documents(
        self,
        fund_id: str,
        inventory_id: Optional[str] = None,
        case_id: Optional[str] = None,
    ) -> int:
        """Runs before the tree is saved, so a failed purge leaves the tree intact"""
        if self._documents is None:
            return 0
        return self._documents.purge(fund_id, inventory_id, case_id)
