import pytest

from archive.errors import NotFoundError, PermissionDeniedError, StorageWriteError, ValidationFailedError
from archive.repository import FundRepository
from archive.seed import default_funds
from archive.service import ArchiveService
from documents.models import DocumentContent, DocumentMetadata
from documents.repository import DocumentRepository
from security.policy.rbac import Role
from storage.kv_store import DOCUMENTS_KEY, FUNDS_KEY, InMemoryKeyValueStore


def _ids(funds):
    ids = set()
    for fund in funds:
        ids.add(fund.id)
        for inventory in fund.inventories:
            ids.add(inventory.id)
            ids.update(case.id for case in inventory.cases)
    return ids


# ==================== PERMISSIONS ====================

def test_reader_cannot_create_fund(archive_for, fund_repo):
    before = fund_repo.funds
    with pytest.raises(PermissionDeniedError):
        archive_for(Role.READER).create_fund("X", "F.2", "", "", "")
    assert fund_repo.funds == before


def test_anonymous_cannot_read(archive_for):
    with pytest.raises(PermissionDeniedError):
        archive_for(None).list_funds()


def test_archivist_can_create_and_delete_tree_nodes(archive_for):
    service = archive_for(Role.ARCHIVIST)
    fund_id = service.create_fund("Parish registers", "F.7")
    service.delete_fund(fund_id)
    assert all(f.id != fund_id for f in service.list_funds())


def test_reader_cannot_delete_case(archive_for, fund_repo):
    with pytest.raises(PermissionDeniedError):
        archive_for(Role.READER).delete_case("f1", "i1", "c1")
    assert fund_repo.funds[0].inventories[0].find_case("c1") is not None


def test_denied_attempt_is_audited(archive_for, audit):
    with pytest.raises(PermissionDeniedError):
        archive_for(Role.READER).delete_fund("f1")
    events = audit.get_events("delete fund")
    assert events and events[-1].status == "denied"


# ==================== FUNDS ====================

def test_owner_fund_lifecycle(owner_archive):
    fund_id = owner_archive.create_fund("Archive A", "F.9", "desc", "1900", "1999")
    assert owner_archive.get_fund(fund_id).name == "Archive A"

    owner_archive.update_fund(fund_id, {"name": "Archive B"})
    fund = owner_archive.get_fund(fund_id)
    assert fund.name == "Archive B"
    assert fund.number == "F.9"
    assert fund.start_year == "1900"

    owner_archive.delete_fund(fund_id)
    assert all(f.id != fund_id for f in owner_archive.list_funds())


def test_create_fund_requires_name_and_number(owner_archive):
    with pytest.raises(ValidationFailedError):
        owner_archive.create_fund("  ", "F.3")
    with pytest.raises(ValidationFailedError):
        owner_archive.create_fund("Name", "")


def test_update_rejects_unknown_fields(owner_archive):
    with pytest.raises(ValidationFailedError):
        owner_archive.update_fund("f1", {"id": "other"})
    with pytest.raises(ValidationFailedError):
        owner_archive.update_fund("f1", {"inventories": []})


def test_update_rejects_blank_required_field(owner_archive):
    with pytest.raises(ValidationFailedError):
        owner_archive.update_fund("f1", {"name": " "})


def test_update_missing_fund(owner_archive):
    with pytest.raises(NotFoundError) as exc:
        owner_archive.update_fund("nope", {"name": "x"})
    assert exc.value.entity == "Fund"


def test_ids_are_unique(owner_archive):
    ids = {owner_archive.create_fund(f"Fund {n}", f"F.{n}") for n in range(20)}
    assert len(ids) == 20


# ==================== INVENTORIES AND CASES ====================

def test_create_case_under_missing_inventory_leaves_tree_unchanged(owner_archive, fund_repo, store):
    before = fund_repo.funds
    raw_before = store.get(FUNDS_KEY)
    with pytest.raises(NotFoundError) as exc:
        owner_archive.create_case("f1", "missing", "Title", "1")
    assert exc.value.entity == "Inventory"
    assert fund_repo.funds == before
    assert store.get(FUNDS_KEY) == raw_before


def test_create_inventory_under_missing_fund(owner_archive):
    with pytest.raises(NotFoundError) as exc:
        owner_archive.create_inventory("missing", "Title", "1")
    assert exc.value.entity == "Fund"


def test_inventory_and_case_lifecycle(owner_archive):
    inventory_id = owner_archive.create_inventory("f1", "Ordinances", "Op.2", "Bylaws")
    case_id = owner_archive.create_case("f1", inventory_id, "Street lighting", "7", "1901")

    case = owner_archive.get_case("f1", inventory_id, case_id)
    assert case.year == "1901"

    owner_archive.update_case("f1", inventory_id, case_id, {"title": "Gas lighting"})
    assert owner_archive.get_case("f1", inventory_id, case_id).title == "Gas lighting"

    owner_archive.update_inventory("f1", inventory_id, {"description": "Bylaws 1900-1910"})
    assert owner_archive.get_inventory("f1", inventory_id).description == "Bylaws 1900-1910"

    owner_archive.delete_case("f1", inventory_id, case_id)
    with pytest.raises(NotFoundError):
        owner_archive.get_case("f1", inventory_id, case_id)

    owner_archive.delete_inventory("f1", inventory_id)
    with pytest.raises(NotFoundError):
        owner_archive.get_inventory("f1", inventory_id)


def test_update_missing_case_names_the_segment(owner_archive):
    with pytest.raises(NotFoundError) as exc:
        owner_archive.update_case("f1", "i1", "missing", {"title": "x"})
    assert exc.value.entity == "Case"


def test_delete_fund_removes_all_descendants(owner_archive):
    fund_id = owner_archive.create_fund("Archive A", "F.9")
    inventory_id = owner_archive.create_inventory(fund_id, "Inv", "1")
    case_ids = [owner_archive.create_case(fund_id, inventory_id, f"Case {n}", str(n)) for n in range(3)]

    owner_archive.delete_fund(fund_id)
    remaining = _ids(owner_archive.list_funds())
    assert fund_id not in remaining
    assert inventory_id not in remaining
    assert remaining.isdisjoint(case_ids)


def test_delete_case_purges_its_documents(owner_archive, owner_documents, doc_repo):
    keep = owner_documents.create_document("Keep", "d", "f1", "i1", "c2", DocumentContent(text="t"))
    drop = owner_documents.create_document("Drop", "d", "f1", "i1", "c1", DocumentContent(text="t"))

    owner_archive.delete_case("f1", "i1", "c1")
    ids = [d.id for d in doc_repo.list()]
    assert keep in ids
    assert drop not in ids


def test_delete_fund_purges_documents(owner_archive, owner_documents, doc_repo, store):
    document_id = owner_documents.create_document("Doc", "d", "f1", "i1", "c1", DocumentContent(text="t"))
    owner_archive.delete_fund("f1")
    assert doc_repo.count() == 0
    assert store.get(f"archiveDocument:{document_id}") is None


# ==================== PERSISTENCE ====================

def test_persist_reload_round_trip(owner_archive, fund_repo, store):
    fund_id = owner_archive.create_fund("Archive A", "F.9", "desc", "1900", "1999")
    inventory_id = owner_archive.create_inventory(fund_id, "Inv", "1")
    owner_archive.create_case(fund_id, inventory_id, "Case", "1", "1950", "notes")

    reloaded = FundRepository(store)
    assert reloaded.funds == fund_repo.funds


def test_returned_funds_are_copies(owner_archive, fund_repo):
    funds = owner_archive.list_funds()
    funds[0].name = "Mutated"
    funds[0].inventories.clear()
    assert fund_repo.funds[0].name != "Mutated"
    assert fund_repo.funds[0].inventories


def test_listeners_receive_new_tree(owner_archive, fund_repo):
    seen = []
    unsubscribe = fund_repo.subscribe(lambda funds: seen.append([f.id for f in funds]))

    fund_id = owner_archive.create_fund("Archive A", "F.9")
    assert seen == [["f1", fund_id]]

    unsubscribe()
    owner_archive.delete_fund(fund_id)
    assert len(seen) == 1


def test_failing_listener_does_not_break_mutation(owner_archive, fund_repo):
    def broken(funds):
        raise RuntimeError("boom")

    fund_repo.subscribe(broken)
    fund_id = owner_archive.create_fund("Archive A", "F.9")
    assert any(f.id == fund_id for f in fund_repo.funds)


# ==================== SEARCH ====================

def test_search_cases_by_title(owner_archive, archive_for):
    results = archive_for(Role.READER).search_cases("CHARTER")
    assert len(results) == 1
    hit = results[0]
    assert (hit.fund_id, hit.inventory_id, hit.case_id) == ("f1", "i1", "c1")
    assert hit.title.startswith("F.1 - ")


def test_blank_case_search_returns_nothing(owner_archive):
    assert owner_archive.search_cases("   ") == []


def test_updates_strip_strings_like_creates(owner_archive):
    owner_archive.update_fund("f1", {"name": "  Renamed  ", "number": " F.1a "})
    fund = owner_archive.get_fund("f1")
    assert (fund.name, fund.number) == ("Renamed", "F.1a")

    owner_archive.update_case("f1", "i1", "c1", {"title": "  Charter  "})
    assert owner_archive.get_case("f1", "i1", "c1").title == "Charter"


# ==================== FAILED CASCADES ====================

class DocumentsWriteFailingStore(InMemoryKeyValueStore):
    """Accepts every write until fail_documents is set, then rejects the metadata key"""

    fail_documents = False

    def set(self, key, value):
        if self.fail_documents and key == DOCUMENTS_KEY:
            raise OSError("disk full")
        super().set(key, value)


@pytest.fixture
def failing_setup(session_for):
    store = DocumentsWriteFailingStore()
    funds = FundRepository(store, seed=default_funds())
    documents = DocumentRepository(store)
    documents.add(
        DocumentMetadata(title="Doc", description="d", fund_id="f1", inventory_id="i1", case_id="c1"),
        DocumentContent(text="t"),
    )
    service = ArchiveService(funds, session_for(Role.OWNER), documents=documents)
    store.fail_documents = True
    return service, funds, documents


@pytest.mark.parametrize("delete", [
    lambda s: s.delete_fund("f1"),
    lambda s: s.delete_inventory("f1", "i1"),
    lambda s: s.delete_case("f1", "i1", "c1"),
])
def test_failed_document_purge_keeps_tree(failing_setup, delete):
    service, funds, documents = failing_setup
    before = funds.funds

    with pytest.raises(StorageWriteError):
        delete(service)

    assert funds.funds == before
    assert [(d.fund_id, d.case_id) for d in documents.list()] == [("f1", "c1")]
