from datetime import date

import pytest
from sqlalchemy.exc import SQLAlchemyError

from devicebook.core.config import settings
from devicebook.core.errors import StorageError, UploadRejected
from devicebook.crud.device_files import (
    get_device_file,
    get_eigenbeleg_file,
    list_device_files,
    remove_device_file,
    store_eigenbeleg,
    store_upload,
)
from devicebook.crud.devices import create_device
from devicebook.models.device_file import DeviceFile
from devicebook.services.device_files import (
    device_folder,
    structured_file_name,
    unique_file_name,
    validate_upload,
)


@pytest.fixture()
def device(db_session):
    return create_device(
        db_session,
        "local",
        {
            "id": "RS-2026-001",
            "model": "iPhone 14",
            "storage": "256GB",
            "color": "Blau",
            "purchaseDate": "2026-02-14",
            "purchasePrice": "480",
        },
    )


def _upload(db_session, storage, device, **overrides):
    values = dict(filename="scan.pdf", content_type="application/pdf", data=b"%PDF-1.7", category="INVOICE")
    values.update(overrides)
    return store_upload(db_session, storage, device, "local", **values)


def test_validate_upload_checks_size_and_type(monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 100)

    assert validate_upload("image/PNG", 10, "chat") == "CHAT"
    assert validate_upload("application/pdf", 10, "unknown") == "OTHER"
    with pytest.raises(UploadRejected) as empty:
        validate_upload("application/pdf", 0)
    assert empty.value.status_code == 400
    with pytest.raises(UploadRejected) as too_big:
        validate_upload("application/pdf", 101)
    assert too_big.value.status_code == 413
    with pytest.raises(UploadRejected) as wrong_type:
        validate_upload("application/zip", 10)
    assert wrong_type.value.status_code == 415


def test_structured_file_name_uses_category_prefix():
    day = date(2026, 2, 14)

    assert structured_file_name("INVOICE", "RS-1", "beleg.PDF", day) == "Rechnung_RS-1_2026-02-14.PDF"
    assert structured_file_name("PAYPAL", "RS-1", "zahlung.png", day) == "Zahlungsbeleg_RS-1_2026-02-14.png"
    assert structured_file_name("BOGUS", "RS-1", "notiz", day) == "Dokument_RS-1_2026-02-14"


def test_unique_file_name_appends_timestamp(storage):
    storage.save("local/2026-02/RS-1/Rechnung_RS-1.pdf", b"1")
    storage.save("local/2026-02/RS-1/Rechnung_RS-1_1700000000000.pdf", b"2")

    name = unique_file_name(storage, "local/2026-02/RS-1", "Rechnung_RS-1.pdf", clock=lambda: 1700000000.0)

    assert name == "Rechnung_RS-1_1700000000001.pdf"
    assert unique_file_name(storage, "local/2026-02/RS-1", "Chat_RS-1.png") == "Chat_RS-1.png"


def test_store_upload_places_file_in_device_folder(db_session, storage, device):
    record = _upload(db_session, storage, device)

    assert device_folder("local", device) == "local/2026-02/RS-2026-001"
    assert record.file_path.startswith("local/2026-02/RS-2026-001/Rechnung_RS-2026-001_")
    assert record.file_name.endswith(".pdf")
    assert record.file_size == 8
    assert record.category == "INVOICE"
    assert storage.read(record.file_path) == b"%PDF-1.7"
    assert get_device_file(db_session, "local", record.id) is record
    assert get_device_file(db_session, "someone-else", record.id) is None


def test_store_upload_never_overwrites(db_session, storage, device):
    first = _upload(db_session, storage, device)
    second = _upload(db_session, storage, device, data=b"%PDF-2")

    assert first.file_path != second.file_path
    assert storage.read(first.file_path) == b"%PDF-1.7"
    assert len(list_device_files(db_session, device)) == 2


def test_store_upload_rejects_invalid_file(db_session, storage, device):
    with pytest.raises(UploadRejected):
        _upload(db_session, storage, device, content_type="application/x-msdownload")

    assert list_device_files(db_session, device) == []
    assert storage.list_dir(device_folder("local", device)) == []


def test_store_upload_removes_bytes_when_record_fails(db_session, storage, device, monkeypatch):
    def failing_commit():
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(SQLAlchemyError):
        _upload(db_session, storage, device)

    assert storage.list_dir(device_folder("local", device)) == []


def test_remove_device_file_deletes_record_and_bytes(db_session, storage, device):
    record = _upload(db_session, storage, device)
    path = record.file_path

    remove_device_file(db_session, storage, record)

    assert db_session.query(DeviceFile).count() == 0
    assert not storage.exists(path)


def test_remove_device_file_tolerates_missing_bytes(db_session, storage, device):
    record = _upload(db_session, storage, device)
    storage.delete(record.file_path)

    remove_device_file(db_session, storage, record)

    assert db_session.query(DeviceFile).count() == 0
    with pytest.raises(StorageError):
        storage.read(record.file_path)


def test_store_eigenbeleg_keeps_single_record(db_session, storage, device):
    first = store_eigenbeleg(db_session, storage, device, "local", b"%PDF-a", date(2026, 3, 1))
    first_path = first.file_path
    assert first.file_name == "Eigenbeleg_RS-2026-001_2026-03-01.pdf"
    assert first_path == "local/2026-02/RS-2026-001/Eigenbeleg_RS-2026-001_2026-03-01.pdf"

    store_eigenbeleg(db_session, storage, device, "local", b"%PDF-b", date(2026, 3, 1))
    assert storage.read(first_path) == b"%PDF-b"

    latest = store_eigenbeleg(db_session, storage, device, "local", b"%PDF-c", date(2026, 3, 2))

    assert db_session.query(DeviceFile).filter(DeviceFile.category == "EIGENBELEG").count() == 1
    assert get_eigenbeleg_file(db_session, device.id).file_path == latest.file_path
    assert latest.file_type == "application/pdf"
    assert not storage.exists(first_path)
    assert storage.read(latest.file_path) == b"%PDF-c"


def test_store_eigenbeleg_keeps_previous_pdf_when_record_fails(db_session, storage, device, monkeypatch):
    first = store_eigenbeleg(db_session, storage, device, "local", b"%PDF-a", date(2026, 3, 1))
    path = first.file_path

    def failing_commit():
        raise SQLAlchemyError("database is locked")

    monkeypatch.setattr(db_session, "commit", failing_commit)

    with pytest.raises(SQLAlchemyError):
        store_eigenbeleg(db_session, storage, device, "local", b"%PDF-b", date(2026, 3, 1))

    assert storage.read(path) == b"%PDF-a"
    assert storage.list_dir(device_folder("local", device)) == [path]
    record = get_eigenbeleg_file(db_session, device.id)
    assert record.file_path == path
    assert record.file_size == len(b"%PDF-a")


def test_uploaded_eigenbeleg_replaces_existing_one(db_session, storage, device):
    generated = store_eigenbeleg(db_session, storage, device, "local", b"%PDF-generated", date(2026, 3, 1))
    first = _upload(db_session, storage, device, category="EIGENBELEG", data=b"%PDF-scan-1")
    first_path = first.file_path
    second = _upload(
        db_session, storage, device, category="EIGENBELEG", filename="scan.png", content_type="image/png", data=b"png"
    )

    receipts = [item for item in list_device_files(db_session, device) if item.category == "EIGENBELEG"]
    assert len(receipts) == 1
    assert receipts[0].id == generated.id
    assert second.file_type == "image/png"
    assert second.file_name.endswith(".png")
    assert storage.read(second.file_path) == b"png"
    assert not storage.exists(first_path)
    assert storage.list_dir(device_folder("local", device)) == [second.file_path]


def test_move_replaces_target_and_requires_source(storage):
    storage.save("local/a/receipt.pdf.part", b"new")
    storage.save("local/a/receipt.pdf", b"old")

    assert storage.move("local/a/receipt.pdf.part", "local/a/receipt.pdf") == "local/a/receipt.pdf"
    assert storage.read("local/a/receipt.pdf") == b"new"
    assert not storage.exists("local/a/receipt.pdf.part")
    with pytest.raises(StorageError):
        storage.move("local/a/missing.pdf", "local/a/other.pdf")
