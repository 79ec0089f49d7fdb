import json
import zipfile
from datetime import date
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace

from devicebook.services.device_export import archive_file_name, build_device_archive, device_metadata


def _device():
    return SimpleNamespace(
        id="RS-7",
        model="Pixel 7",
        storage="128GB",
        color="Weiß",
        condition="USED",
        status="SOLD",
        imei="359999999999999",
        purchase_date=date(2024, 1, 15),
        purchase_price=Decimal("310.50"),
        sale_date=date(2024, 2, 1),
        sale_price=Decimal("399.00"),
        seller_name="Max Mustermann",
        buyer_name=None,
        is_diff_tax=True,
        created_at="2024-01-15T08:00:00Z",
    )


def _record(name, path):
    return SimpleNamespace(file_name=name, file_path=path)


def test_device_metadata_is_json_friendly():
    metadata = device_metadata(_device())

    assert metadata["purchase_price"] == 310.5
    assert metadata["sale_price"] == 399.0
    assert metadata["purchase_date"] == "2024-01-15"
    assert metadata["buyer_name"] is None
    json.dumps(metadata)


def test_archive_contains_metadata_and_readable_files(storage):
    storage.save("local/2024-01/RS-7/Rechnung_RS-7.pdf", b"invoice")
    storage.save("other/Rechnung_RS-7.pdf", b"second")
    files = [
        _record("Rechnung_RS-7.pdf", "local/2024-01/RS-7/Rechnung_RS-7.pdf"),
        _record("Rechnung_RS-7.pdf", "other/Rechnung_RS-7.pdf"),
        _record("Chat_RS-7.png", "local/2024-01/RS-7/Chat_RS-7.png"),
    ]

    archive = zipfile.ZipFile(BytesIO(build_device_archive(_device(), files, storage)))

    assert sorted(archive.namelist()) == ["Rechnung_RS-7.pdf", "Rechnung_RS-7_1.pdf", "device.json"]
    assert archive.read("Rechnung_RS-7_1.pdf") == b"second"
    metadata = json.loads(archive.read("device.json").decode("utf-8"))
    assert metadata["id"] == "RS-7"
    assert metadata["color"] == "Weiß"


def test_archive_file_name():
    assert archive_file_name("RS-7") == "RS-7_export.zip"
