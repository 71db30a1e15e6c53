import time

import pytest
from fastapi.testclient import TestClient

from contract_intake.main import create_app
from contract_intake.pipeline.services import build_services


@pytest.fixture
def services(intake_settings):
    return build_services(intake_settings)


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client


def upload(client, text, filename="contract.txt", title=None, headers=None):
    data = {"title": title} if title else {}
    response = client.post(
        "/api/documents/upload",
        files={"file": (filename, text.encode(), "text/plain")},
        data=data,
        headers=headers or {},
    )
    assert response.status_code == 200
    return response.json()["file_id"]


def wait_for_analysis(client, analysis_id, timeout=5.0):
    deadline = time.monotonic() + timeout
    while True:
        body = client.get(f"/api/analysis/{analysis_id}").json()
        if body["status"] in ("COMPLETED", "FAILED") or time.monotonic() > deadline:
            return body
        time.sleep(0.05)


def test_upload_and_get_document(client):
    document_id = upload(client, "Some contract", title="Hosting")

    response = client.get(f"/api/documents/{document_id}")
    assert response.status_code == 200
    assert response.json()["title"] == "Hosting"
    assert response.json()["mime_type"] == "text/plain"

    listed = client.get("/api/documents/").json()
    assert [doc["document_id"] for doc in listed] == [document_id]


def test_upload_empty_file(client):
    response = client.post("/api/documents/upload", files={"file": ("empty.txt", b"", "text/plain")})
    assert response.status_code == 400


def test_documents_are_tenant_scoped(client):
    document_id = upload(client, "Some contract", headers={"X-Tenant-Id": "tenant-a"})

    assert client.get(f"/api/documents/{document_id}").status_code == 404
    assert client.get("/api/documents/", headers={"X-Tenant-Id": "tenant-a"}).json()[0]["document_id"] == document_id


def test_end_to_end_rule_based_extraction(client, service_agreement_text):
    document_id = upload(client, service_agreement_text)

    response = client.post(f"/api/analysis/documents/{document_id}")
    assert response.status_code == 202
    submitted = response.json()
    assert submitted["status"] == "PENDING"
    assert submitted["document_id"] == document_id

    result = wait_for_analysis(client, submitted["id"])
    assert result["status"] == "COMPLETED"
    assert result["doc_type"] == "SERVICE_AGREEMENT"
    assert "Acme Corp" in result["vendor"]
    assert result["effective_date"] == "2024-01-01"
    assert result["termination_date"] == "2025-01-01"
    assert all(0.0 <= score <= 1.0 for score in result["confidence"].values())
    assert "raw_result" not in result
    assert result["error"] is None


def test_end_to_end_suggests_registered_contract(client, service_agreement_text):
    response = client.post("/api/contracts/", json={"counterparty_name": "Acme Corporation", "title": "MSA 2022"})
    assert response.status_code == 201
    contract_id = response.json()["contract_id"]

    document_id = upload(client, service_agreement_text)
    analysis_id = client.post(f"/api/analysis/documents/{document_id}").json()["id"]

    result = wait_for_analysis(client, analysis_id)
    assert result["suggested_contract_id"] == contract_id


def test_submit_unknown_document(client):
    response = client.post("/api/analysis/documents/does-not-exist")
    assert response.status_code == 404


def test_get_unknown_analysis(client):
    response = client.get("/api/analysis/does-not-exist")
    assert response.status_code == 404


def test_register_and_list_contracts(client):
    client.post("/api/contracts/", json={"counterparty_name": "Globex LLC"}, headers={"X-Tenant-Id": "t1"})

    assert [c["counterparty_name"] for c in client.get("/api/contracts/", headers={"X-Tenant-Id": "t1"}).json()] \
        == ["Globex LLC"]
    assert client.get("/api/contracts/").json() == []


def test_register_contract_requires_name(client):
    response = client.post("/api/contracts/", json={"counterparty_name": ""})
    assert response.status_code == 422


def test_end_to_end_written_date_agreement(client, made_on_text):
    document_id = upload(client, made_on_text, filename="acme-service.txt")
    analysis_id = client.post(f"/api/analysis/documents/{document_id}").json()["id"]

    result = wait_for_analysis(client, analysis_id)
    assert result["status"] == "COMPLETED"
    assert result["doc_type"] == "SERVICE_AGREEMENT"
    assert result["vendor"] == "Acme Corp"
    assert result["effective_date"] == "2025-01-01"
    assert result["contract_title"] == "SERVICE AGREEMENT"
    assert result["termination_date"] is None


def test_end_to_end_json_upload(client):
    payload = b'{"agreement": "This Service Agreement is made on 03/01/2024 between Initech LLC (\\"Vendor\\")."}'
    response = client.post(
        "/api/documents/upload",
        files={"file": ("contract.json", payload, "application/json")},
    )
    document_id = response.json()["file_id"]
    analysis_id = client.post(f"/api/analysis/documents/{document_id}").json()["id"]

    result = wait_for_analysis(client, analysis_id)
    assert result["status"] == "COMPLETED"
    assert result["vendor"] == "Initech LLC"
    assert result["effective_date"] == "2024-03-01"
