import json

import pytest

from contract_intake.core.errors import InvalidStatusTransition, PersistenceError
from contract_intake.database.record_store import (
    InMemoryAnalysisRecordStore,
    JsonAnalysisRecordStore,
    build_record_store,
)
from contract_intake.schemas.analysis import AnalysisRecord, AnalysisStatus


@pytest.fixture(params=["memory", "json"])
def store(request, tmp_path):
    if request.param == "memory":
        return InMemoryAnalysisRecordStore()
    return JsonAnalysisRecordStore(tmp_path / "analyses")


def new_record(**kwargs):
    kwargs.setdefault("document_id", "doc-1")
    kwargs.setdefault("tenant_id", "default")
    return AnalysisRecord(**kwargs)


def test_create_and_get(store):
    record = store.create(new_record(user_id="alice"))
    loaded = store.get(record.id)

    assert loaded.status == AnalysisStatus.PENDING
    assert loaded.user_id == "alice"
    assert store.get("missing") is None


def test_create_rejects_duplicate_id(store):
    record = store.create(new_record())

    with pytest.raises(PersistenceError):
        store.create(new_record(id=record.id))


def test_create_requires_pending(store):
    with pytest.raises(ValueError):
        store.create(new_record(status=AnalysisStatus.PROCESSING))


def test_forward_transitions(store):
    record = store.create(new_record())
    store.update_status(record.id, AnalysisStatus.PROCESSING, confidence={})
    completed = store.update_status(
        record.id,
        AnalysisStatus.COMPLETED,
        vendor="Acme Corp",
        confidence={"vendor": 0.6},
        raw_result={"strategy": "rule_based"},
    )

    assert completed.status == AnalysisStatus.COMPLETED
    assert completed.vendor == "Acme Corp"
    assert completed.updated_at >= record.updated_at
    assert store.get(record.id).raw_result == {"strategy": "rule_based"}


@pytest.mark.parametrize("path", [
    [AnalysisStatus.COMPLETED],
    [AnalysisStatus.PROCESSING, AnalysisStatus.PENDING],
    [AnalysisStatus.PROCESSING, AnalysisStatus.PROCESSING],
    [AnalysisStatus.PROCESSING, AnalysisStatus.FAILED, AnalysisStatus.PROCESSING],
])
def test_rejects_invalid_transitions(store, path):
    record = store.create(new_record())
    *valid, invalid = path
    for status in valid:
        fields = {"error": "boom"} if status == AnalysisStatus.FAILED else {}
        store.update_status(record.id, status, **fields)

    with pytest.raises(InvalidStatusTransition):
        store.update_status(record.id, invalid)


def test_terminal_record_is_never_rewritten(store):
    record = store.create(new_record())
    store.update_status(record.id, AnalysisStatus.PROCESSING)
    store.update_status(record.id, AnalysisStatus.FAILED, error="boom")

    with pytest.raises(InvalidStatusTransition):
        store.update_status(record.id, AnalysisStatus.COMPLETED, vendor="Late Inc")
    assert store.get(record.id).error == "boom"
    assert store.get(record.id).vendor is None


def test_result_fields_only_with_completed(store):
    record = store.create(new_record())

    with pytest.raises(ValueError):
        store.update_status(record.id, AnalysisStatus.PROCESSING, vendor="Acme Corp")
    with pytest.raises(ValueError):
        store.update_status(record.id, AnalysisStatus.PROCESSING, error="boom")
    with pytest.raises(ValueError):
        store.update_status(record.id, AnalysisStatus.PROCESSING, status_code=3)


def test_update_unknown_record(store):
    with pytest.raises(PersistenceError):
        store.update_status("missing", AnalysisStatus.PROCESSING)


def test_confidence_is_clamped(store):
    record = store.create(new_record())
    store.update_status(record.id, AnalysisStatus.PROCESSING)
    completed = store.update_status(
        record.id,
        AnalysisStatus.COMPLETED,
        confidence={"vendor": 1.4, "doc_type": -1, "effective_date": "x"},
    )

    assert completed.confidence == {"vendor": 1.0, "doc_type": 0.0, "effective_date": 0.0}


def test_list_by_status(store):
    first = store.create(new_record())
    second = store.create(new_record())
    store.update_status(second.id, AnalysisStatus.PROCESSING)

    assert [r.id for r in store.list_by_status(AnalysisStatus.PENDING)] == [first.id]
    assert [r.id for r in store.list_by_status(AnalysisStatus.PROCESSING)] == [second.id]


def test_json_store_survives_restart(tmp_path):
    directory = tmp_path / "analyses"
    record = JsonAnalysisRecordStore(directory).create(new_record())
    JsonAnalysisRecordStore(directory).update_status(record.id, AnalysisStatus.PROCESSING)

    reloaded = JsonAnalysisRecordStore(directory).get(record.id)
    assert reloaded.status == AnalysisStatus.PROCESSING

    on_disk = json.loads((directory / f"{record.id}.json").read_text())
    assert on_disk["status"] == "PROCESSING"
    assert not list(directory.glob("*.tmp"))


def test_json_store_rejects_path_ids(tmp_path):
    store = JsonAnalysisRecordStore(tmp_path / "analyses")

    with pytest.raises(PersistenceError):
        store.get("../escape")


def test_build_record_store(tmp_path):
    assert isinstance(build_record_store("memory"), InMemoryAnalysisRecordStore)
    assert isinstance(build_record_store("json", tmp_path), JsonAnalysisRecordStore)
    with pytest.raises(ValueError):
        build_record_store("redis")
