import pytest

from archive.errors import NotFoundError, PermissionDeniedError, ValidationFailedError
from documents.models import Attachment, DocumentContent
from documents.repository import DocumentRepository
from security.policy.rbac import Role
from storage.kv_store import DOCUMENTS_KEY, document_content_key


def _create(service, title="Letter", barcode=None, text="Body text", case_id="c1"):
    return service.create_document(
        title, "A description", "f1", "i1", case_id, DocumentContent(text=text, barcode=barcode)
    )


def test_barcode_scenario(owner_documents, documents_for):
    with_barcode = _create(owner_documents, "With barcode", barcode="12345")
    _create(owner_documents, "Without barcode")

    reader = documents_for(Role.READER)
    results = reader.search_documents_by_barcode("12345")
    assert [d.metadata.id for d in results] == [with_barcode]
    assert reader.search_documents_by_barcode(" 12345 ")[0].metadata.id == with_barcode
    assert reader.search_documents_by_barcode("1234") == []
    assert reader.search_documents_by_barcode("") == []


def test_barcode_returns_every_match(owner_documents):
    first = _create(owner_documents, "First", barcode="777")
    second = _create(owner_documents, "Second", barcode="777")
    found = {d.metadata.id for d in owner_documents.search_documents_by_barcode("777")}
    assert found == {first, second}


def test_create_stamps_metadata(owner_documents, doc_repo, store):
    document_id = _create(owner_documents)
    metadata = doc_repo.get_metadata(document_id)
    assert metadata.created_by == owner_documents._session.user_id
    assert metadata.created_at == metadata.updated_at
    assert store.read_json(document_content_key(document_id))["text"] == "Body text"
    assert store.read_json(DOCUMENTS_KEY)[0]["id"] == document_id


def test_create_requires_existing_case(owner_documents):
    with pytest.raises(NotFoundError) as exc:
        _create(owner_documents, case_id="missing")
    assert exc.value.entity == "Case"


@pytest.mark.parametrize("title,text", [("", "body"), ("Title", "  ")])
def test_create_requires_fields(owner_documents, title, text):
    with pytest.raises(ValidationFailedError):
        _create(owner_documents, title=title, text=text)


def test_archivist_cannot_create_but_can_edit(owner_documents, documents_for):
    document_id = _create(owner_documents)
    archivist = documents_for(Role.ARCHIVIST)
    with pytest.raises(PermissionDeniedError):
        _create(archivist)

    updated = archivist.update_document(document_id, metadata={"title": "Renamed"})
    assert updated.metadata.title == "Renamed"


def test_reader_cannot_delete(owner_documents, documents_for, doc_repo):
    document_id = _create(owner_documents)
    with pytest.raises(PermissionDeniedError):
        documents_for(Role.READER).delete_document(document_id)
    assert doc_repo.get_metadata(document_id) is not None


def test_update_merges_partial_content(owner_documents):
    document_id = _create(owner_documents, barcode="555")
    before = owner_documents.get_document(document_id)

    updated = owner_documents.update_document(document_id, content={"text": "New text"})
    assert updated.content.text == "New text"
    assert updated.content.barcode == "555"
    assert updated.metadata.title == before.metadata.title
    assert updated.metadata.updated_at >= before.metadata.updated_at


def test_update_can_clear_barcode(owner_documents):
    document_id = _create(owner_documents, barcode="555")
    owner_documents.update_document(document_id, content={"barcode": None})
    assert owner_documents.get_document(document_id).content.barcode is None
    assert owner_documents.search_documents_by_barcode("555") == []


def test_update_rejects_path_changes(owner_documents):
    document_id = _create(owner_documents)
    with pytest.raises(ValidationFailedError):
        owner_documents.update_document(document_id, metadata={"case_id": "c2"})


def test_update_missing_document(owner_documents):
    with pytest.raises(NotFoundError):
        owner_documents.update_document("missing", metadata={"title": "x"})


def test_delete_removes_metadata_and_content(owner_documents, store):
    document_id = _create(owner_documents)
    owner_documents.delete_document(document_id)
    assert store.get(document_content_key(document_id)) is None
    with pytest.raises(NotFoundError):
        owner_documents.get_document(document_id)
    with pytest.raises(NotFoundError):
        owner_documents.delete_document(document_id)


def test_list_filters_by_path(owner_documents):
    in_c1 = _create(owner_documents, case_id="c1")
    in_c2 = _create(owner_documents, case_id="c2")
    assert {d.id for d in owner_documents.list_documents()} == {in_c1, in_c2}
    assert [d.id for d in owner_documents.list_documents("f1", "i1", "c2")] == [in_c2]
    assert owner_documents.list_documents(fund_id="other") == []


def test_text_search(owner_documents):
    by_title = _create(owner_documents, title="Charter copy")
    by_text = _create(owner_documents, title="Other", text="mentions the CHARTER")
    _create(owner_documents, title="Unrelated", text="nothing here")

    found = {d.metadata.id for d in owner_documents.search_documents("charter")}
    assert found == {by_title, by_text}
    assert owner_documents.search_documents("") == []


def test_repository_reload_round_trip(owner_documents, doc_repo, store):
    _create(owner_documents, barcode="1")
    _create(owner_documents, barcode="2")
    assert DocumentRepository(store).list() == doc_repo.list()


def test_corrupt_metadata_starts_empty(store):
    store.set(DOCUMENTS_KEY, "not json")
    assert DocumentRepository(store).list() == []


def test_purge_by_inventory(owner_documents, doc_repo):
    _create(owner_documents, case_id="c1")
    _create(owner_documents, case_id="c2")
    assert doc_repo.purge("f1", "i1") == 2
    assert doc_repo.count() == 0
    assert doc_repo.purge("f1") == 0


def test_attachment_round_trip_through_data_url():
    attachment = Attachment.from_bytes("scan.png", b"\x89PNG\r\n", mime_type="image/png")
    assert attachment.data_url.startswith("data:image/png;base64,")
    assert attachment.size == 6
    assert attachment.decode() == b"\x89PNG\r\n"


def test_attachment_requires_data_url():
    with pytest.raises(ValueError):
        Attachment(file_name="a.txt", name="a", data_url="https://example.org/a.txt")
