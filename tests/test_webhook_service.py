# tests/test_webhook_service.py

import base64

import pytest

from app.erp.schemas import NAVSetup
from app.esign.exceptions import (
    ESignValidationException,
    MappingNotFoundException,
    UpstreamException,
)
from app.esign.schemas import (
    DocumentMapping,
    GlobalSignRequest,
    SignaturePosition,
    SignerRequest,
    StampPosition,
    WebhookPayload,
)
from app.esign.services import SignRequestService, WebhookService
from app.worker.sink import ERP_LOG_ENTRY

from conftest import FakeERPClient, RecordingSink


def webhook(document_id, signing_status, stamping_status, filename="INV-2024-001_contract.pdf", signers=None):
    return WebhookPayload.model_validate({
        "data": {
            "id": document_id,
            "type": "document",
            "attributes": {
                "filename": filename,
                "category": "global",
                "doc_url": f"https://provider.test/documents/{document_id}/download",
                "signing_status": signing_status,
                "stamping_status": stamping_status,
                "signers": signers or [],
            },
        }
    })


@pytest.fixture
def service(signing_client, folders, correlation_repo, erp_client, sink):
    return WebhookService(signing_client, folders, correlation_repo, erp_client, sink)


@pytest.fixture
def signed_mapping(correlation_repo, folders):
    mapping = DocumentMapping(
        document_id="doc-001",
        email="finance@example.com",
        invoice_number="INV-2024-001",
        filename="INV-2024-001_contract.pdf",
        entry_no=101,
        signing=True,
    )
    correlation_repo.save_mapping(mapping)
    (folders.progress_path / mapping.filename).write_bytes(b"unsigned")
    return mapping


def folder_snapshot(folders):
    return {
        name: sorted(path.name for path in folder.iterdir())
        for name, folder in (
            ("ready", folders.ready_path),
            ("progress", folders.progress_path),
            ("finish", folders.finish_path),
        )
    }


def test_end_to_end_sign_then_signed_callback(signing_client, folders, correlation_repo, erp_client, sink):
    (folders.ready_path / "INV-2024-001_contract.pdf").write_bytes(b"%PDF-unsigned")
    sign_service = SignRequestService(signing_client, folders, correlation_repo, erp_client)
    webhook_service = WebhookService(signing_client, folders, correlation_repo, erp_client, sink)

    result = sign_service.request_sign(GlobalSignRequest(
        entry_no=101,
        email="finance@example.com",
        invoice_number="INV-2024-001",
        signing=True,
        signers=[SignerRequest(
            name="Budi", email="budi@example.com", sign_page=1,
            signature_positions=SignaturePosition(x=100, y=650),
        )],
    ))
    document_id = result.data.id

    assert (folders.progress_path / "INV-2024-001_contract.pdf").exists()
    assert correlation_repo.get_mapping(document_id).invoice_number == "INV-2024-001"

    payload = webhook(document_id, "completed", "none")
    signing_client.documents[payload.data.attributes.doc_url] = b"%PDF-signed"

    summary = webhook_service.process(payload)

    assert summary["state"] == "signed"
    assert (folders.progress_path / "INV-2024-001_contract.pdf").read_bytes() == b"%PDF-signed"
    assert signing_client.stamp_requests == []
    assert list(folders.finish_path.iterdir()) == []


def test_missing_id_is_rejected(service):
    with pytest.raises(ESignValidationException):
        service.process(webhook("", "completed", "none"))


def test_unknown_document_leaves_folders_untouched(service, folders, signing_client, sink):
    (folders.progress_path / "INV-2024-001_contract.pdf").write_bytes(b"unsigned")
    before = folder_snapshot(folders)

    with pytest.raises(MappingNotFoundException):
        service.process(webhook("doc-unknown", "completed", "success"))

    assert folder_snapshot(folders) == before
    assert signing_client.downloads == []
    assert sink.events == []


def test_pending_delivery_only_records_status(service, signed_mapping, signing_client, correlation_repo, folders):
    summary = service.process(webhook("doc-001", "in_progress", "none"))

    assert summary["state"] == "awaiting_signature"
    assert signing_client.downloads == []
    assert (folders.progress_path / signed_mapping.filename).read_bytes() == b"unsigned"
    assert correlation_repo.get_document_info("doc-001").signing_status == "in_progress"


def test_signed_with_stamp_positions_requests_stamp(service, signing_client, correlation_repo, folders):
    correlation_repo.save_mapping(DocumentMapping(
        document_id="doc-001",
        email="finance@example.com",
        invoice_number="INV-2024-001",
        filename="INV-2024-001_contract.pdf",
        entry_no=101,
        signing=True,
        stamping=True,
        stamp_positions=StampPosition(x=400, y=700, page=1),
    ))
    (folders.progress_path / "INV-2024-001_contract.pdf").write_bytes(b"unsigned")

    summary = service.process(webhook("doc-001", "completed", "none"))

    assert summary["state"] == "stamp_requested"
    assert summary["stamp_document_id"] == "stamp-001"
    _, payload = signing_client.stamp_requests[0]
    assert base64.b64decode(payload["doc"]) == b"%PDF-downloaded"
    assert (folders.progress_path / "INV-2024-001_contract.pdf").read_bytes() == b"%PDF-downloaded"

    stamp_mapping = correlation_repo.get_mapping("stamp-001")
    assert stamp_mapping.invoice_number == "INV-2024-001"
    assert stamp_mapping.filename == "INV-2024-001_contract.pdf"
    assert stamp_mapping.entry_no == 101


def test_stamp_failure_does_not_fail_delivery(service, signing_client, correlation_repo, folders):
    correlation_repo.save_mapping(DocumentMapping(
        document_id="doc-001",
        invoice_number="INV-2024-001",
        filename="INV-2024-001_contract.pdf",
        stamping=True,
        stamp_positions=StampPosition(x=400, y=700),
    ))
    (folders.progress_path / "INV-2024-001_contract.pdf").write_bytes(b"unsigned")
    signing_client.fail_stamp = True

    summary = service.process(webhook("doc-001", "completed", "none"))

    assert summary["processed"] is True
    assert "stamp_document_id" not in summary
    assert (folders.progress_path / "INV-2024-001_contract.pdf").read_bytes() == b"%PDF-downloaded"


def test_signed_without_progress_copy_is_tolerated(service, signing_client, correlation_repo):
    correlation_repo.save_mapping(DocumentMapping(document_id="doc-001", invoice_number="INV-2024-001"))

    summary = service.process(webhook("doc-001", "completed", "none"))

    assert summary["state"] == "signed"
    assert len(signing_client.downloads) == 1


def test_download_failure_propagates(service, signed_mapping, signing_client, folders):
    signing_client.fail_download = True

    with pytest.raises(UpstreamException):
        service.process(webhook("doc-001", "completed", "none"))

    assert (folders.progress_path / signed_mapping.filename).read_bytes() == b"unsigned"


def test_stamped_moves_to_finish(service, signed_mapping, signing_client, folders):
    payload = webhook("doc-001", "completed", "success")
    signing_client.documents[payload.data.attributes.doc_url] = b"%PDF-stamped"

    summary = service.process(payload)

    assert summary["state"] == "stamped"
    assert (folders.finish_path / signed_mapping.filename).read_bytes() == b"%PDF-stamped"
    assert not (folders.progress_path / signed_mapping.filename).exists()


def test_repeated_stamped_delivery_is_idempotent(service, signed_mapping, signing_client, folders):
    payload = webhook("doc-001", "completed", "success")
    signing_client.documents[payload.data.attributes.doc_url] = b"%PDF-stamped"

    service.process(payload)
    service.process(payload)

    assert [path.name for path in folders.finish_path.iterdir()] == [signed_mapping.filename]
    assert (folders.finish_path / signed_mapping.filename).read_bytes() == b"%PDF-stamped"
    assert list(folders.progress_path.iterdir()) == []


def test_stamped_uses_erp_folders(signing_client, folders, correlation_repo, sink, tmp_path):
    erp_process = tmp_path / "erp_process"
    erp_out = tmp_path / "erp_out"
    erp_process.mkdir()
    (erp_process / "INV-2024-001.pdf").write_bytes(b"signed")
    correlation_repo.save_mapping(DocumentMapping(
        document_id="doc-001", invoice_number="INV-2024-001", filename="INV-2024-001.pdf", entry_no=5
    ))
    erp = FakeERPClient(NAVSetup(
        file_location_in=str(tmp_path / "erp_in"),
        file_location_process=str(erp_process),
        file_location_out=str(erp_out),
    ))
    service = WebhookService(signing_client, folders, correlation_repo, erp, sink)

    service.process(webhook("doc-001", "completed", "success", filename="INV-2024-001.pdf"))

    assert (erp_out / "INV-2024-001.pdf").exists()
    assert not (erp_process / "INV-2024-001.pdf").exists()
    assert list(folders.finish_path.iterdir()) == []


def test_legacy_mapping_falls_back_to_filename(service, correlation_repo, mock_redis, folders, signing_client):
    mock_redis.set("esign:document:doc-old", "legacy@example.com")
    (folders.progress_path / "INV-2023-999.pdf").write_bytes(b"unsigned")

    service.process(webhook("doc-old", "completed", "none", filename="INV-2023-999.pdf"))

    assert (folders.progress_path / "INV-2023-999.pdf").read_bytes() == b"%PDF-downloaded"
    assert correlation_repo.get_document_info("doc-old").invoice_number == "INV-2023-999"


def test_erp_log_entry_is_emitted(service, signed_mapping, sink):
    service.process(webhook(
        "doc-001", "in_progress", "none",
        signers=[
            {"name": "Budi", "email": "budi@example.com", "status": "completed", "signed_at": "2024-01-15T08:30:00Z"},
            {"name": "Sari", "email": "sari@example.com", "status": "pending"},
        ],
    ))

    entries = sink.of_kind(ERP_LOG_ENTRY)
    assert len(entries) == 1
    entry = entries[0]
    assert entry["entry_no"] == 101
    assert entry["invoice_number"] == "INV-2024-001"
    assert entry["signing_status"] == "In Progress"
    assert entry["stamping_status"] == "None"
    assert entry["signer1_signing_status"] == "Completed"
    assert entry["signer1_signing_date"] == "2024-01-15T08:30:00Z"
    assert entry["signer2_signing_status"] == "Pending"
    assert entry["signer2_signing_date"] == "0001-01-01T00:00:00Z"
    assert entry["signer3_signing_status"] is None


def test_stamped_log_entry_omits_signers(service, signed_mapping, sink):
    service.process(webhook(
        "doc-001", "completed", "success",
        signers=[{"name": "Budi", "email": "budi@example.com", "status": "completed"}],
    ))

    entry = sink.of_kind(ERP_LOG_ENTRY)[0]
    assert entry["stamping_status"] == "Completed"
    assert entry["signer1_signing_status"] is None


def test_sink_failure_does_not_fail_delivery(signing_client, folders, correlation_repo, erp_client, signed_mapping):
    service = WebhookService(signing_client, folders, correlation_repo, erp_client, RecordingSink(fail=True))

    assert service.process(webhook("doc-001", "in_progress", "none"))["processed"] is True


def test_stamped_filename_from_callback_stays_in_finish(service, correlation_repo, folders, tmp_path):
    correlation_repo.save_mapping(DocumentMapping(document_id="doc-001", invoice_number="INV-2024-001"))

    service.process(webhook("doc-001", "completed", "success", filename="../../escape.pdf"))

    assert (folders.finish_path / "escape.pdf").read_bytes() == b"%PDF-downloaded"
    assert not (tmp_path / "escape.pdf").exists()
