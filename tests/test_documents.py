import io
from datetime import date

import starlette.datastructures
from fastapi.testclient import TestClient
from openpyxl import load_workbook
from pydantic.alias_generators import to_camel

from app_config import Settings
from conftest import build_workbook, make_payload, sheet_row
from server import create_app
from student_documents import (
    EXPORT_SHEET_NAME,
    STUDENT_HEADERS,
    read_student_rows,
    student_pdf_fields,
)
from student_schemas import STUDENT_INPUT_FIELDS
from student_store import StudentStore

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def upload(client, content, filename="santri.xlsx"):
    return client.post(
        "/api/students/import/excel",
        files={"file": (filename, content, XLSX)},
    )


def test_export_excel_layout(seeded_client):
    response = seeded_client.get("/api/students/export/excel")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(XLSX)
    assert response.headers["content-disposition"] == "attachment; filename=data-santri.xlsx"

    workbook = load_workbook(io.BytesIO(response.content))
    sheet = workbook[EXPORT_SHEET_NAME]
    header = [cell.value for cell in sheet[1]]
    assert header == STUDENT_HEADERS
    assert len(header) == 32
    assert all(cell.font.bold for cell in sheet[1])
    assert sheet["A1"].fill.fgColor.rgb == "FFE3F2FD"
    assert sheet.max_row == 4
    first = [cell.value for cell in sheet[2]]
    assert first[:4] == [1, "REG-2024-001", "2024001", "Ahmad Fadli Rahman"]
    assert first[4] == "3201234567890123"
    assert first[8] == "2007-05-15"
    assert first[9] == 17
    assert first[15] == "001"


def test_export_empty_store_has_header_only(client):
    response = client.get("/api/students/export/excel")
    sheet = load_workbook(io.BytesIO(response.content))[EXPORT_SHEET_NAME]
    assert sheet.max_row == 1


def test_export_then_import_round_trip(seeded_client, settings):
    originals = seeded_client.get("/api/students").json()
    content = seeded_client.get("/api/students/export/excel").content

    fresh = create_app(settings, store=StudentStore(today=lambda: date(2024, 7, 15)))
    with TestClient(fresh) as client:
        result = upload(client, content).json()
        assert result["success"] is True
        assert result["imported"] == 3
        assert result["errors"] == []
        imported = client.get("/api/students").json()

    for original, copy in zip(originals, imported):
        for field in STUDENT_INPUT_FIELDS:
            key = to_camel(field)
            assert copy[key] == original[key], key
        assert copy["umur"] == original["umur"]


def test_import_collects_row_errors_and_keeps_good_rows(client):
    good = make_payload(0)
    bad = make_payload(1, jenisKelamin="X", nama="")
    blank = [None] * 32
    late = make_payload(2)
    content = build_workbook([sheet_row(good), sheet_row(bad), blank, sheet_row(late)])

    response = upload(client, content)
    assert response.status_code == 200
    data = response.json()
    assert data["imported"] == 2
    assert len(data["errors"]) == 1
    assert data["errors"][0].startswith("Row 3: ")
    assert "jenisKelamin" in data["errors"][0]
    assert "nama" in data["errors"][0]
    assert data["message"] == "Successfully imported 2 students with 1 errors"

    students = client.get("/api/students").json()
    assert [s["nama"] for s in students] == ["Ahmad Fadli Rahman", "Muhammad Iqbal"]
    assert [s["nis"] for s in students] == ["2024001", "2024002"]


def test_import_accepts_native_cell_types(client):
    payload = make_payload(tanggalLahir=date(2008, 3, 20), tanggalMasuk=date(2023, 7, 15), anakKe=2.0)
    payload["nik"] = 3201234567890126
    content = build_workbook([sheet_row(payload)])

    data = upload(client, content).json()
    assert data["imported"] == 1, data["errors"]
    student = client.get("/api/students/1").json()
    assert student["tanggalLahir"] == "2008-03-20"
    assert student["tanggalMasuk"] == "2023-07-15"
    assert student["nik"] == "3201234567890126"
    assert student["anakKe"] == 2
    assert student["umur"] == 16


def test_import_reads_leading_number_of_count_cells(client):
    rows = [
        sheet_row(make_payload(0, anakKe="-", jumlahSaudara="tidak ada")),
        sheet_row(make_payload(1, anakKe="2 (dua)", jumlahSaudara=0)),
    ]
    data = upload(client, build_workbook(rows)).json()
    assert data["imported"] == 2, data["errors"]
    assert data["errors"] == []

    first, second = client.get("/api/students").json()
    assert first["anakKe"] is None
    assert first["jumlahSaudara"] is None
    assert second["anakKe"] == 2
    assert second["jumlahSaudara"] is None


def test_read_student_rows_skips_header_and_blank_rows():
    content = build_workbook([[None] * 32, sheet_row(make_payload())])
    rows = read_student_rows(content)
    assert [number for number, _ in rows] == [3]
    assert rows[0][1]["nama"] == "Fatimah Zahra"
    assert "umur" not in rows[0][1]
    assert "nis" not in rows[0][1]


def test_import_requires_a_file(client):
    response = client.post("/api/students/import/excel")
    assert response.status_code == 400
    assert response.json()["detail"] == "No file uploaded"


def test_import_rejects_unreadable_workbook(client):
    response = upload(client, b"not a spreadsheet")
    assert response.status_code == 500
    assert response.json()["detail"].startswith("Failed to import data")


def test_import_rejects_oversized_upload(store):
    app = create_app(Settings(seed_sample_data=False, max_upload_mb=0), store=store)
    with TestClient(app) as client:
        response = upload(client, build_workbook([]))
    assert response.status_code == 413
    assert len(store) == 0


def test_oversized_upload_is_rejected_before_reading(store, monkeypatch):
    async def fail_read(self, size=-1):
        raise AssertionError("upload body should not be read")

    monkeypatch.setattr(starlette.datastructures.UploadFile, "read", fail_read)
    app = create_app(Settings(seed_sample_data=False, max_upload_mb=0), store=store)
    with TestClient(app) as client:
        response = upload(client, build_workbook([sheet_row(make_payload())]))
    assert response.status_code == 413
    assert response.json()["detail"] == "File exceeds the 0 MB upload limit"
    assert len(store) == 0


def test_import_template(client):
    response = client.get("/api/students/import-template")
    assert response.status_code == 200
    assert response.headers["content-disposition"] == "attachment; filename=template-data-santri.xlsx"
    sheet = load_workbook(io.BytesIO(response.content)).worksheets[0]
    assert [cell.value for cell in sheet[1]] == STUDENT_HEADERS
    assert sheet.max_row == 1

    result = upload(client, response.content).json()
    assert result["imported"] == 0
    assert result["errors"] == []


def test_student_pdf(seeded_client):
    response = seeded_client.get("/api/students/2/pdf")
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"] == "attachment; filename=data-santri-2024002.pdf"
    assert response.content.startswith(b"%PDF")


def test_student_pdf_not_found(client):
    assert client.get("/api/students/5/pdf").status_code == 404


def test_student_pdf_fields_format_values(seeded_store):
    student = seeded_store.get(3)
    fields = dict(student_pdf_fields(student))
    assert fields["Jenis Kelamin"] == "Laki-laki"
    assert fields["Tempat, Tanggal Lahir"] == "Bogor, 2006-12-10"
    assert fields["Umur"] == "17 tahun"
    assert fields["RT/RW"] == "002/003"
    assert fields["Keterangan"] == "-"
    assert fields["NIS"] == "2024003"


def test_stats_export_pdf(seeded_client):
    response = seeded_client.get("/api/dashboard/stats/export", params={"format": "pdf"})
    assert response.status_code == 200
    assert response.headers["content-disposition"] == "attachment; filename=statistik-santri.pdf"
    assert response.content.startswith(b"%PDF")


def test_stats_export_pdf_without_students(client):
    response = client.get("/api/dashboard/stats/export")
    assert response.status_code == 200
    assert response.content.startswith(b"%PDF")


def test_stats_export_excel(seeded_client):
    response = seeded_client.get("/api/dashboard/stats/export", params={"format": "excel"})
    assert response.status_code == 200
    workbook = load_workbook(io.BytesIO(response.content))
    assert workbook.sheetnames == ["Ringkasan", "Per Kelas", "Distribusi Umur"]
    summary = workbook["Ringkasan"]
    assert [cell.value for cell in summary[2]] == [3, 2, 1, 16.7]
    assert workbook["Per Kelas"].max_row == 4
    assert [row[1] for row in workbook["Distribusi Umur"].iter_rows(min_row=2, values_only=True)] == [0, 3, 0]


def test_stats_export_rejects_unknown_format(client):
    assert client.get("/api/dashboard/stats/export", params={"format": "csv"}).status_code == 400
