# tests/test_erp.py

from unittest.mock import MagicMock

import pytest

from app.erp.client import ERPClient
from app.erp.schemas import ERPLogEntry, NAVSetup
from app.erp.status import map_signing_status, map_stamping_status
from app.esign.exceptions import UpstreamException


def make_response(status_code=200, json_body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.json.return_value = json_body
    response.content = b"{}" if json_body is not None else b""
    response.text = text
    return response


def make_client(response, enabled=True):
    session = MagicMock()
    session.headers = {}
    session.request.return_value = response
    client = ERPClient(
        base_url="http://nav.local:7048/BC/",
        company="PT Contoh Indonesia",
        username="user",
        password="pass",
        enabled=enabled,
        session=session,
    )
    return client, session


def test_get_setup_parses_odata_collection():
    client, session = make_client(make_response(json_body={"value": [{
        "File_Location_In": "/erp/in",
        "File_Location_Process": "/erp/process",
        "File_Location_Out": "/erp/out",
    }]}))

    setup = client.get_setup()

    assert setup == NAVSetup(
        file_location_in="/erp/in", file_location_process="/erp/process", file_location_out="/erp/out"
    )
    method, url = session.request.call_args.args
    assert method == "GET"
    assert url == "http://nav.local:7048/BC/ODataV4/Company('PT%20Contoh%20Indonesia')/Api_MekariSetup"
    assert session.auth == ("user", "pass")


def test_get_setup_empty_collection():
    client, _ = make_client(make_response(json_body={"value": []}))
    assert client.get_setup() is None


def test_disabled_client_makes_no_calls():
    client, session = make_client(make_response(json_body={}), enabled=False)

    assert client.get_setup() is None
    client.update_log_entry(ERPLogEntry(entry_no=1))
    session.request.assert_not_called()


def test_update_log_entry_patches_entry():
    client, session = make_client(make_response(204))
    entry = ERPLogEntry(
        entry_no=12,
        document_id="doc-1",
        invoice_number="INV-1",
        signing_status="Completed",
        stamping_status="None",
    )

    client.update_log_entry(entry)

    method, url = session.request.call_args.args
    kwargs = session.request.call_args.kwargs
    assert method == "PATCH"
    assert url.endswith("/Api_MekariInvoiceLogEntries(12)")
    assert kwargs["headers"] == {"If-Match": "*"}
    assert kwargs["json"]["InvoiceNo"] == "INV-1"
    assert "DocumentId" not in kwargs["json"]
    assert "Signer1SigningStatus" not in kwargs["json"]


def test_non_2xx_raises_upstream():
    client, _ = make_client(make_response(500, text="boom"))

    with pytest.raises(UpstreamException) as exc_info:
        client.get_setup()
    assert exc_info.value.status_code == 500


@pytest.mark.parametrize(
    "status, expected",
    [("completed", "Completed"), ("in_progress", "In Progress"), ("pending", "Pending"), ("", ""), ("odd", "odd")],
)
def test_map_signing_status(status, expected):
    assert map_signing_status(status) == expected


@pytest.mark.parametrize("status, expected", [("success", "Completed"), ("none", "None"), ("pending", "Pending")])
def test_map_stamping_status(status, expected):
    assert map_stamping_status(status) == expected
