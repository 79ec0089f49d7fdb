import zipfile
from io import BytesIO

import pytest
from fastapi.testclient import TestClient
from openpyxl import load_workbook

from devicebook.core.config import settings
from devicebook.core.security import issue_access_token
from devicebook.db.session import get_db
from devicebook.main import app
from devicebook.services.storage import get_storage


COMPANY = {
    "companyName": "Handy Ankauf Berlin",
    "ownerName": "Erika Beispiel",
    "street": "Hauptstraße",
    "houseNumber": "12a",
    "postalCode": "10115",
    "city": "Berlin",
    "email": "info@handy-ankauf.example",
    "phone": "030 1234567",
    "taxId": "12/345/67890",
}


@pytest.fixture()
def client(session_factory, storage, monkeypatch):
    monkeypatch.setattr(settings, "API_KEY", "")

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()


def _create(client, device_id="RS-1", **overrides):
    payload = {
        "id": device_id,
        "model": "iPhone 13",
        "storage": "128GB",
        "color": "Blau",
        "purchaseDate": "2024-03-05",
        "purchasePrice": "250,00",
    }
    payload.update(overrides)
    return client.post("/api/v1/devices", json=payload)


def test_health(client):
    assert client.get("/health").json() == {"ok": True}


def test_device_lifecycle(client):
    created = _create(client)
    assert created.status_code == 201
    body = created.json()
    assert body["purchase_price"] == 250.0
    assert body["financials"]["is_final"] is False

    duplicate = _create(client)
    assert duplicate.status_code == 409
    assert duplicate.json()["message"] == "Geräte-ID existiert bereits"

    updated = client.patch(
        "/api/v1/devices/RS-1",
        json={"status": "SOLD", "salePrice": 440, "saleDate": "20.03.2024"},
    )
    assert updated.status_code == 200
    financials = updated.json()["financials"]
    assert financials["is_final"] is True
    assert financials["taxable_margin"] == 190.0
    assert financials["vat"] == 30.34

    listed = client.get("/api/v1/devices", params={"date_field": "sale_date", "date_from": "2024-03-01"})
    assert [item["id"] for item in listed.json()] == ["RS-1"]

    assert client.delete("/api/v1/devices/RS-1").json() == {"status": "deleted"}
    missing = client.get("/api/v1/devices/RS-1")
    assert missing.status_code == 404
    assert missing.json()["code"] == "http_error"


def test_create_sold_device_without_sale_date_is_rejected(client):
    response = _create(client, status="SOLD", salePrice="300")

    assert response.status_code == 422
    assert response.json()["code"] == "validation_error"


def test_invalid_date_field_is_rejected(client):
    response = client.get("/api/v1/devices", params={"date_field": "imei", "date_from": "2024-01-01"})

    assert response.status_code == 422


def test_file_upload_download_and_delete(client):
    _create(client)

    uploaded = client.post(
        "/api/v1/devices/RS-1/files",
        files={"file": ("kaufvertrag.pdf", b"%PDF-1.4 test", "application/pdf")},
        data={"category": "invoice"},
    )
    assert uploaded.status_code == 201
    record = uploaded.json()
    assert record["category"] == "INVOICE"
    assert record["file_name"].startswith("Rechnung_RS-1_")

    rejected = client.post(
        "/api/v1/devices/RS-1/files",
        files={"file": ("tool.exe", b"MZ", "application/x-msdownload")},
    )
    assert rejected.status_code == 415

    listed = client.get("/api/v1/devices/RS-1/files").json()
    assert [item["id"] for item in listed] == [record["id"]]

    download = client.get(f"/api/v1/files/{record['id']}/download")
    assert download.status_code == 200
    assert download.content == b"%PDF-1.4 test"

    assert client.delete(f"/api/v1/files/{record['id']}").json() == {"status": "deleted"}
    assert client.get(f"/api/v1/files/{record['id']}/download").status_code == 404


def test_upload_to_unknown_device_returns_404(client):
    response = client.post(
        "/api/v1/devices/NOPE/files",
        files={"file": ("a.pdf", b"%PDF", "application/pdf")},
    )

    assert response.status_code == 404


def test_company_profile_and_logo(client):
    assert client.get("/api/v1/company").status_code == 404
    assert client.post("/api/v1/company/logo", files={"logo": ("logo.png", b"png", "image/png")}).status_code == 400

    saved = client.put("/api/v1/company", json=COMPANY)
    assert saved.status_code == 200
    assert saved.json()["country"] == "Deutschland"
    assert saved.json()["company_name"] == "Handy Ankauf Berlin"

    logo = client.post("/api/v1/company/logo", files={"logo": ("logo.gif", b"GIF89a", "image/gif")})
    assert logo.status_code == 415

    logo = client.post("/api/v1/company/logo", files={"logo": ("logo.png", b"\x89PNG", "image/png")})
    assert logo.json()["logo_url"] == "local/company/logo.png"

    cleared = client.delete("/api/v1/company/logo")
    assert cleared.json()["logo_url"] is None


def test_eigenbeleg_generation(client, storage):
    _create(client)

    no_name = client.post("/api/v1/devices/RS-1/eigenbeleg", json={"recipientName": "  "})
    assert no_name.status_code == 400
    assert no_name.json()["message"] == "Name des Empfängers ist erforderlich"

    no_company = client.post("/api/v1/devices/RS-1/eigenbeleg", json={"recipientName": "Max Mustermann"})
    assert no_company.status_code == 400
    assert "Firmendaten" in no_company.json()["message"]

    unknown = client.post("/api/v1/devices/NOPE/eigenbeleg", json={"recipientName": "Max Mustermann"})
    assert unknown.status_code == 404

    client.put("/api/v1/company", json=COMPANY)
    created = client.post("/api/v1/devices/RS-1/eigenbeleg", json={"recipientName": "Max Mustermann"})
    assert created.status_code == 200
    body = created.json()
    assert body["success"] is True
    assert body["file_name"].startswith("Eigenbeleg_RS-1_")
    assert storage.read(body["file_path"]).startswith(b"%PDF")

    client.post("/api/v1/devices/RS-1/eigenbeleg", json={"recipient_name": "Max Mustermann", "reason": "Barkauf"})
    files = client.get("/api/v1/devices/RS-1/files").json()
    assert [item["category"] for item in files] == ["EIGENBELEG"]


def test_second_eigenbeleg_upload_replaces_the_first(client, storage):
    _create(client)

    first = client.post(
        "/api/v1/devices/RS-1/files",
        files={"file": ("beleg.pdf", b"%PDF-first", "application/pdf")},
        data={"category": "EIGENBELEG"},
    )
    second = client.post(
        "/api/v1/devices/RS-1/files",
        files={"file": ("beleg.pdf", b"%PDF-second", "application/pdf")},
        data={"category": "eigenbeleg"},
    )

    assert first.status_code == 201
    assert second.status_code == 201
    assert second.json()["id"] == first.json()["id"]
    listed = client.get("/api/v1/devices/RS-1/files").json()
    assert [item["category"] for item in listed] == ["EIGENBELEG"]
    assert client.get(f"/api/v1/files/{listed[0]['id']}/download").content == b"%PDF-second"
    assert not storage.exists(first.json()["file_path"])


def test_spreadsheet_and_archive_exports(client):
    assert client.get("/api/v1/devices/export.xlsx").status_code == 404

    _create(client, "RS-1")
    _create(client, "RS-2", status="SOLD", salePrice="1190", saleDate="2024-03-10", purchasePrice="1000")

    export = client.get("/api/v1/devices/export.xlsx")
    assert export.status_code == 200
    assert "geraete-export-" in export.headers["content-disposition"]
    sheet = load_workbook(BytesIO(export.content)).active
    assert {sheet["A2"].value, sheet["A3"].value} == {"RS-1", "RS-2"}

    archive = client.get("/api/v1/devices/RS-2/export")
    assert archive.status_code == 200
    assert 'filename="RS-2_export.zip"' in archive.headers["content-disposition"]
    assert zipfile.ZipFile(BytesIO(archive.content)).namelist() == ["device.json"]


def test_monthly_report(client):
    _create(client, "RS-1", status="SOLD", salePrice="1190", saleDate="2024-03-10", purchasePrice="1000")
    _create(client, "RS-2")

    report = client.get("/api/v1/reports/monthly", params={"month": "2024-03"})
    assert report.status_code == 200
    body = report.json()
    assert body["kpis"]["sold_count"] == 1
    assert body["kpis"]["stock_count"] == 1
    assert body["kpis"]["total_vat"] == 30.34
    assert [item["id"] for item in body["devices"]] == ["RS-1"]

    assert client.get("/api/v1/reports/monthly", params={"month": "2024-13"}).status_code == 422


def test_api_key_is_enforced_when_configured(client, monkeypatch):
    _create(client)
    monkeypatch.setattr(settings, "API_KEY", "s3cret")

    assert client.get("/api/v1/devices").status_code == 401
    assert client.get("/api/v1/devices", headers={"X-API-Key": "wrong"}).status_code == 401
    allowed = client.get("/api/v1/devices", headers={"X-API-Key": "s3cret"})
    assert [item["id"] for item in allowed.json()] == ["RS-1"]


def test_bearer_token_scopes_to_subject(client):
    _create(client)
    token = issue_access_token("alice")
    headers = {"Authorization": f"Bearer {token}"}

    assert client.get("/api/v1/devices", headers=headers).json() == []
    assert client.get("/api/v1/devices/RS-1", headers=headers).status_code == 404
    assert client.get("/api/v1/devices", headers={"Authorization": "Bearer nonsense"}).status_code == 401
    assert client.get("/api/v1/devices", headers={"Authorization": "Basic abc"}).status_code == 401


def test_negative_amounts_are_rejected(client):
    response = _create(client, purchasePrice="-5")

    assert response.status_code == 422
    assert client.get("/api/v1/devices").json() == []


def test_request_id_is_echoed(client):
    response = client.get("/api/v1/devices", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"
    assert response.headers["X-Response-Time"].endswith("ms")
