# tests/test_routes.py

import pytest

from app.api_logs.repository import APILogRepository
from app.api_logs.schemas import APILogCreate
from app.esign.exceptions import UnauthorizedException
from app.esign.schemas import DocumentMapping
from app.esign.services import (
    SignRequestService,
    WebhookService,
    get_sign_request_service,
    get_webhook_service,
)
from app.main import esign_app as fast_api_app
from app.oauth.repository import OAuthRepository

from conftest import FakeOAuthService, FakeSigningClient

SIGN_REQUEST = {
    "entry_no": 101,
    "email": "finance@example.com",
    "invoice_number": "INV-2024-001",
    "signing": True,
    "signers": [
        {
            "name": "Budi",
            "email": "budi@example.com",
            "sign_page": 1,
            "signature_positions": {"x": 100, "y": 650},
        }
    ],
}


@pytest.fixture
def services(client, signing_client, folders, correlation_repo, erp_client, sink):
    sign_service = SignRequestService(signing_client, folders, correlation_repo, erp_client)
    webhook_service = WebhookService(signing_client, folders, correlation_repo, erp_client, sink)
    fast_api_app.dependency_overrides[get_sign_request_service] = lambda: sign_service
    fast_api_app.dependency_overrides[get_webhook_service] = lambda: webhook_service
    return sign_service, webhook_service


def webhook_body(document_id, signing_status="completed", stamping_status="none"):
    return {
        "data": {
            "id": document_id,
            "type": "document",
            "attributes": {
                "filename": "INV-2024-001_contract.pdf",
                "doc_url": f"https://provider.test/documents/{document_id}/download",
                "signing_status": signing_status,
                "stamping_status": stamping_status,
                "signers": [],
            },
        }
    }


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["status"] == "healthy"
    assert body["data"]["version"] == "1.0.0"


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["success"] is True


def test_request_sign_created(client, services, folders, correlation_repo):
    (folders.ready_path / "INV-2024-001_contract.pdf").write_bytes(b"%PDF")

    response = client.post("/api/v1/esign/documents/request-sign", json=SIGN_REQUEST)

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["data"]["id"] == "doc-001"
    assert correlation_repo.get_mapping("doc-001") is not None


def test_request_sign_needs_auth(client, folders, correlation_repo, erp_client):
    service = SignRequestService(
        FakeSigningClient(is_oauth2=True), folders, correlation_repo, erp_client, oauth=FakeOAuthService()
    )
    fast_api_app.dependency_overrides[get_sign_request_service] = lambda: service

    response = client.post("/api/v1/esign/documents/request-sign", json=SIGN_REQUEST)

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["need_auth"] is True
    assert "state=finance%40example.com" in data["redirect_url"]


def test_request_sign_invalid_signers(client, services, folders):
    (folders.ready_path / "INV-2024-001.pdf").write_bytes(b"%PDF")

    response = client.post(
        "/api/v1/esign/documents/request-sign", json={**SIGN_REQUEST, "signers": []}
    )

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"]["code"] == "BAD_REQUEST"


def test_request_sign_malformed_body(client, services):
    response = client.post(
        "/api/v1/esign/documents/request-sign",
        content="not json",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_request_sign_document_missing(client, services):
    response = client.post("/api/v1/esign/documents/request-sign", json=SIGN_REQUEST)

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_profile(client, services):
    response = client.get("/api/v1/esign/profile", params={"email": "finance@example.com"})

    assert response.status_code == 200
    assert response.json()["data"]["email"] == "finance@example.com"


def test_webhook_processed(client, services, correlation_repo, folders):
    correlation_repo.save_mapping(DocumentMapping(
        document_id="doc-001",
        email="finance@example.com",
        invoice_number="INV-2024-001",
        filename="INV-2024-001_contract.pdf",
    ))
    (folders.progress_path / "INV-2024-001_contract.pdf").write_bytes(b"unsigned")

    response = client.post("/webhook/mekari", json=webhook_body("doc-001"))

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["state"] == "signed"
    assert (folders.progress_path / "INV-2024-001_contract.pdf").read_bytes() == b"%PDF-downloaded"


def test_webhook_other_provider_path(client, services, correlation_repo):
    correlation_repo.save_mapping(DocumentMapping(document_id="doc-002", invoice_number="INV-2"))

    response = client.post("/webhook/other", json=webhook_body("doc-002", "in_progress"))

    assert response.status_code == 200


def test_webhook_unknown_document(client, services):
    response = client.post("/webhook/mekari", json=webhook_body("doc-unknown"))

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"


def test_webhook_missing_id(client, services):
    response = client.post("/webhook/mekari", json={"data": {"attributes": {}}})

    assert response.status_code == 400


def test_webhook_invalid_json(client, services):
    response = client.post(
        "/webhook/mekari", content="{not json", headers={"Content-Type": "application/json"}
    )

    assert response.status_code == 400


def test_oauth_check_and_callback(client, db_session):
    response = client.get("/api/v1/oauth/check", params={"email": "finance@example.com"})
    assert response.status_code == 200
    assert response.json()["data"]["has_code"] is False

    response = client.get(
        "/redirect/oauth", params={"code": "code-1", "state": "finance@example.com", "locale": "id"}
    )
    assert response.status_code == 200
    assert OAuthRepository(db_session).find_by_email("finance@example.com").code == "code-1"

    response = client.get("/api/v1/oauth/check", params={"email": "finance@example.com"})
    assert response.json()["data"]["has_code"] is True


def test_oauth_check_requires_email(client):
    response = client.get("/api/v1/oauth/check")
    assert response.status_code == 400


def test_oauth_authorize_redirects(client):
    response = client.get(
        "/api/v1/oauth/authorize", params={"email": "finance@example.com"}, follow_redirects=False
    )

    assert response.status_code == 302
    assert "state=finance%40example.com" in response.headers["location"]


def test_oauth_token_not_found(client):
    response = client.get("/api/v1/oauth/token", params={"email": "nobody@example.com"})
    assert response.status_code == 404


def test_logs_endpoints(client, db_session):
    repo = APILogRepository(db_session)
    repo.save(APILogCreate(endpoint="/documents/request_global_sign", method="POST", invoice_no="INV-2024-001"))
    repo.save(APILogCreate(endpoint="/profile", method="GET"))

    response = client.get("/api/v1/logs", params={"limit": 10})
    assert response.status_code == 200
    assert len(response.json()["data"]) == 2

    response = client.get("/api/v1/logs/search", params={"invoice": "INV-2024-001"})
    assert response.status_code == 200
    assert [log["invoice_no"] for log in response.json()["data"]] == ["INV-2024-001"]

    response = client.get("/api/v1/logs/search")
    assert response.status_code == 400


def test_webhook_download_unauthorized_is_retryable(client, services, signing_client, correlation_repo):
    correlation_repo.save_mapping(DocumentMapping(
        document_id="doc-001", email="finance@example.com", invoice_number="INV-2024-001"
    ))

    def unauthorized_download(email, doc_url):
        raise UnauthorizedException(email)

    signing_client.download = unauthorized_download

    response = client.post("/webhook/mekari", json=webhook_body("doc-001"))

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"


def test_webhook_download_failure(client, services, signing_client, correlation_repo):
    correlation_repo.save_mapping(DocumentMapping(document_id="doc-001", invoice_number="INV-2024-001"))
    signing_client.fail_download = True

    response = client.post("/webhook/mekari", json=webhook_body("doc-001"))

    assert response.status_code == 500
