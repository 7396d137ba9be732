import io
import logging
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
from xml.sax.saxutils import escape

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import pandas as pd
from openpyxl import load_workbook
from openpyxl.styles import Font, PatternFill
from openpyxl.utils import get_column_letter
from pydantic.alias_generators import to_camel
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import Image as RLImage
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from student_schemas import StudentRecord, StudentStats

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
PDF_MEDIA_TYPE = "application/pdf"

EXPORT_SHEET_NAME = "Data Santri"
EXPORT_FILENAME = "data-santri.xlsx"
TEMPLATE_FILENAME = "template-data-santri.xlsx"
HEADER_FILL = "FFE3F2FD"

# (header, field, column width); position in this list is the column position
STUDENT_COLUMNS: List[Tuple[str, str, int]] = [
    ("No. Urut", "no_urut", 10),
    ("No. Registrasi", "no_reg", 15),
    ("NIS", "nis", 12),
    ("Nama Lengkap", "nama", 25),
    ("NIK", "nik", 18),
    ("No. KK", "no_kk", 18),
    ("Jenis Kelamin", "jenis_kelamin", 15),
    ("Tempat Lahir", "tempat_lahir", 20),
    ("Tanggal Lahir", "tanggal_lahir", 15),
    ("Umur", "umur", 8),
    ("Agama", "agama", 12),
    ("Kewarganegaraan", "kewarganegaraan", 15),
    ("Anak Ke", "anak_ke", 10),
    ("Jumlah Saudara", "jumlah_saudara", 15),
    ("Alamat", "alamat", 30),
    ("RT", "rt", 8),
    ("RW", "rw", 8),
    ("Desa", "desa", 20),
    ("Dusun", "dusun", 15),
    ("Kecamatan", "kecamatan", 20),
    ("Kabupaten", "kabupaten", 20),
    ("Provinsi", "provinsi", 20),
    ("Nama Ayah", "nama_ayah", 25),
    ("NIK Ayah", "nik_ayah", 18),
    ("Pekerjaan Ayah", "pekerjaan_ayah", 20),
    ("Nama Ibu", "nama_ibu", 25),
    ("NIK Ibu", "nik_ibu", 18),
    ("Pekerjaan Ibu", "pekerjaan_ibu", 20),
    ("Kelas", "kelas", 12),
    ("Keterangan", "keterangan", 30),
    ("No. WhatsApp", "no_wa", 15),
    ("Tanggal Masuk", "tanggal_masuk", 15),
]
STUDENT_HEADERS = [header for header, _, _ in STUDENT_COLUMNS]
SYSTEM_FIELDS = {"no_urut", "no_reg", "nis", "umur"}

# 0-based column index -> input field, read by position rather than header text
IMPORT_COLUMNS: List[Tuple[int, str]] = [
    (index, field)
    for index, (_, field, _) in enumerate(STUDENT_COLUMNS)
    if field not in SYSTEM_FIELDS
]
COUNT_FIELDS = {"anak_ke", "jumlah_saudara"}
COUNT_PATTERN = re.compile(r"[+-]?\d+")


def _excel_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def generate_students_excel(students: Iterable[StudentRecord]) -> bytes:
    rows = [
        [_excel_value(getattr(student, field)) for _, field, _ in STUDENT_COLUMNS]
        for student in students
    ]
    df = pd.DataFrame(rows, columns=STUDENT_HEADERS, dtype=object)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        df.to_excel(writer, sheet_name=EXPORT_SHEET_NAME, index=False)
        sheet = writer.sheets[EXPORT_SHEET_NAME]
        for col, (_, _, width) in enumerate(STUDENT_COLUMNS, start=1):
            sheet.column_dimensions[get_column_letter(col)].width = width
        for cell in sheet[1]:
            cell.font = Font(bold=True)
            cell.fill = PatternFill(fill_type="solid", fgColor=HEADER_FILL)
    buffer.seek(0)
    return buffer.getvalue()


def generate_import_template() -> bytes:
    df = pd.DataFrame(columns=STUDENT_HEADERS)
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        df.to_excel(writer, index=False, sheet_name=EXPORT_SHEET_NAME)
        sheet = writer.sheets[EXPORT_SHEET_NAME]
        header_fmt = writer.book.add_format({"bold": True, "bg_color": "#E3F2FD", "border": 1})
        for col, (header, _, width) in enumerate(STUDENT_COLUMNS):
            sheet.set_column(col, col, width)
            sheet.write(0, col, header, header_fmt)
    buffer.seek(0)
    return buffer.getvalue()


def _cell_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = str(value).strip()
    return text or None


def _cell_count(value: Any) -> Optional[int]:
    """Leading integer of a count cell; anything else ("-", "tidak ada") is unknown."""
    text = _cell_text(value)
    if text is None:
        return None
    match = COUNT_PATTERN.match(text)
    if match is None:
        return None
    return int(match.group()) or None


def _read_cell(row: Tuple[Any, ...], index: int, field: str) -> Any:
    value = row[index] if index < len(row) else None
    if field in COUNT_FIELDS:
        return _cell_count(value)
    return _cell_text(value)


def read_student_rows(content: bytes) -> List[Tuple[int, Dict[str, Any]]]:
    """Read candidate students from the first worksheet of an .xlsx file.

    Returns ``(sheet_row_number, payload)`` pairs starting at row 2, with the
    payload keyed by wire (camelCase) names. Completely blank rows are
    dropped.
    """
    workbook = load_workbook(io.BytesIO(content), data_only=True)
    sheet = workbook.worksheets[0]
    rows: List[Tuple[int, Dict[str, Any]]] = []
    for row_number, row in enumerate(
        sheet.iter_rows(min_row=2, max_row=sheet.max_row, values_only=True), start=2
    ):
        payload = {
            to_camel(field): _read_cell(row, index, field) for index, field in IMPORT_COLUMNS
        }
        if all(value is None for value in payload.values()):
            continue
        rows.append((row_number, payload))
    return rows


def _fmt(value: Any, suffix: str = "") -> str:
    if value is None or value == "":
        return "-"
    if isinstance(value, date):
        value = value.isoformat()
    return f"{value}{suffix}"


def student_pdf_filename(student: StudentRecord) -> str:
    return f"data-santri-{student.nis}.pdf"


def student_pdf_fields(student: StudentRecord) -> List[Tuple[str, str]]:
    return [
        ("No. Urut", _fmt(student.no_urut)),
        ("No. Registrasi", _fmt(student.no_reg)),
        ("NIS", _fmt(student.nis)),
        ("Nama Lengkap", _fmt(student.nama)),
        ("NIK", _fmt(student.nik)),
        ("No. KK", _fmt(student.no_kk)),
        ("Jenis Kelamin", "Laki-laki" if student.jenis_kelamin == "L" else "Perempuan"),
        ("Tempat, Tanggal Lahir", f"{student.tempat_lahir}, {student.tanggal_lahir.isoformat()}"),
        ("Umur", _fmt(student.umur, " tahun")),
        ("Agama", _fmt(student.agama)),
        ("Kewarganegaraan", _fmt(student.kewarganegaraan)),
        ("Anak ke-", _fmt(student.anak_ke)),
        ("Jumlah Saudara", _fmt(student.jumlah_saudara)),
        ("Alamat", _fmt(student.alamat)),
        ("RT/RW", f"{student.rt or '-'}/{student.rw or '-'}"),
        ("Desa", _fmt(student.desa)),
        ("Dusun", _fmt(student.dusun)),
        ("Kecamatan", _fmt(student.kecamatan)),
        ("Kabupaten", _fmt(student.kabupaten)),
        ("Provinsi", _fmt(student.provinsi)),
        ("Nama Ayah", _fmt(student.nama_ayah)),
        ("NIK Ayah", _fmt(student.nik_ayah)),
        ("Pekerjaan Ayah", _fmt(student.pekerjaan_ayah)),
        ("Nama Ibu", _fmt(student.nama_ibu)),
        ("NIK Ibu", _fmt(student.nik_ibu)),
        ("Pekerjaan Ibu", _fmt(student.pekerjaan_ibu)),
        ("Kelas", _fmt(student.kelas)),
        ("Tanggal Masuk", _fmt(student.tanggal_masuk)),
        ("No. WhatsApp", _fmt(student.no_wa)),
        ("Keterangan", _fmt(student.keterangan)),
    ]


def _styles() -> Dict[str, ParagraphStyle]:
    styles = getSampleStyleSheet()
    return {
        "title": ParagraphStyle(
            name="FormTitle",
            parent=styles["Title"],
            fontSize=18,
            textColor=colors.HexColor("#0f172a"),
            spaceAfter=4,
        ),
        "subtitle": ParagraphStyle(
            name="FormSubtitle",
            parent=styles["Normal"],
            fontSize=12,
            alignment=1,
            textColor=colors.HexColor("#475569"),
            spaceAfter=14,
        ),
        "section": ParagraphStyle(
            name="SectionHeading",
            parent=styles["Heading2"],
            fontSize=12,
            textColor=colors.HexColor("#0f766e"),
            spaceBefore=6,
            spaceAfter=6,
        ),
        "label": ParagraphStyle(
            name="LabelCell",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=10,
            leading=12,
        ),
        "value": ParagraphStyle(
            name="ValueCell",
            parent=styles["Normal"],
            fontSize=10,
            leading=12,
            wordWrap="CJK",
        ),
        "header": ParagraphStyle(
            name="TableHeaderCell",
            parent=styles["Normal"],
            fontName="Helvetica-Bold",
            fontSize=9,
            textColor=colors.whitesmoke,
            leading=11,
        ),
    }


def _styled_table(data: List[List[Any]], col_widths: Optional[List[int]] = None) -> Table:
    table = Table(data, colWidths=col_widths, repeatRows=1, hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#0f766e")),
                ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
                ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("GRID", (0, 0), (-1, -1), 0.4, colors.HexColor("#9ca3af")),
                ("ROWBACKGROUNDS", (0, 1), (-1, -1), [colors.white, colors.HexColor("#f8fafc")]),
                ("LEFTPADDING", (0, 0), (-1, -1), 6),
                ("RIGHTPADDING", (0, 0), (-1, -1), 6),
            ]
        )
    )
    return table


def generate_student_pdf(student: StudentRecord) -> bytes:
    buffer = io.BytesIO()
    styles = _styles()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=50, rightMargin=50, topMargin=50, bottomMargin=50)
    elements: List[Any] = [
        Paragraph("FORMULIR DATA SANTRI", styles["title"]),
        Paragraph("Sistem Kelola Data Santri", styles["subtitle"]),
    ]
    rows = [
        [Paragraph(escape(f"{label}:"), styles["label"]), Paragraph(escape(value), styles["value"])]
        for label, value in student_pdf_fields(student)
    ]
    table = Table(rows, colWidths=[150, 345], hAlign="LEFT")
    table.setStyle(
        TableStyle(
            [
                ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.HexColor("#e2e8f0")),
                ("TOPPADDING", (0, 0), (-1, -1), 3),
                ("BOTTOMPADDING", (0, 0), (-1, -1), 3),
            ]
        )
    )
    elements.append(table)
    doc.build(elements)
    pdf_value = buffer.getvalue()
    buffer.close()
    return pdf_value


def create_count_chart(labels: List[str], counts: List[int], xlabel: str, color: str) -> io.BytesIO:
    fig, ax = plt.subplots(figsize=(5.4, 3.2))
    ax.bar(labels, counts, color=color)
    ax.set_ylabel("Santri")
    ax.set_xlabel(xlabel)
    ax.tick_params(axis="x", labelsize=8, rotation=20)
    ax.tick_params(axis="y", labelsize=8)
    ax.yaxis.get_major_locator().set_params(integer=True)
    plt.tight_layout()
    buffer = io.BytesIO()
    plt.savefig(buffer, format="png", dpi=150)
    plt.close(fig)
    buffer.seek(0)
    return buffer


def generate_stats_pdf(stats: StudentStats, generated_at: datetime) -> bytes:
    buffer = io.BytesIO()
    styles = _styles()
    doc = SimpleDocTemplate(buffer, pagesize=A4, leftMargin=28, rightMargin=28, topMargin=28, bottomMargin=28)
    elements: List[Any] = [
        Paragraph("Laporan Statistik Santri", styles["title"]),
        Paragraph(f"Dibuat pada {generated_at.strftime('%Y-%m-%d %H:%M')}", styles["subtitle"]),
        Paragraph("Ringkasan", styles["section"]),
        _styled_table(
            [
                ["Metrik", "Nilai"],
                ["Total Santri", stats.total_students],
                ["Laki-laki", stats.male_students],
                ["Perempuan", stats.female_students],
                ["Rata-rata Umur", f"{stats.average_age} tahun"],
            ],
            col_widths=[200, 120],
        ),
        Spacer(1, 10),
        Paragraph("Santri per Kelas", styles["section"]),
    ]
    class_rows: List[List[Any]] = [["Kelas", "Jumlah"]]
    class_rows += [[item.kelas, item.count] for item in stats.students_by_class] or [["-", 0]]
    elements.append(_styled_table(class_rows, col_widths=[200, 120]))
    if stats.students_by_class:
        chart = create_count_chart(
            [item.kelas for item in stats.students_by_class],
            [item.count for item in stats.students_by_class],
            "Kelas",
            "#1e3a8a",
        )
        elements += [Spacer(1, 6), RLImage(chart, width=380, height=225)]
    elements += [Spacer(1, 10), Paragraph("Distribusi Umur", styles["section"])]
    age_rows: List[List[Any]] = [["Rentang Umur", "Jumlah"]]
    age_rows += [[item.age_range, item.count] for item in stats.age_distribution]
    elements.append(_styled_table(age_rows, col_widths=[200, 120]))
    chart = create_count_chart(
        [item.age_range for item in stats.age_distribution],
        [item.count for item in stats.age_distribution],
        "Rentang Umur",
        "#0f766e",
    )
    elements += [Spacer(1, 6), RLImage(chart, width=380, height=225)]
    doc.build(elements)
    pdf_value = buffer.getvalue()
    buffer.close()
    return pdf_value


def generate_stats_excel(stats: StudentStats) -> bytes:
    buffer = io.BytesIO()
    summary_df = pd.DataFrame([
        {
            "Total Santri": stats.total_students,
            "Laki-laki": stats.male_students,
            "Perempuan": stats.female_students,
            "Rata-rata Umur": stats.average_age,
        }
    ])
    class_df = pd.DataFrame(
        [{"Kelas": item.kelas, "Jumlah": item.count} for item in stats.students_by_class],
        columns=["Kelas", "Jumlah"],
    )
    age_df = pd.DataFrame(
        [{"Rentang Umur": item.age_range, "Jumlah": item.count} for item in stats.age_distribution],
        columns=["Rentang Umur", "Jumlah"],
    )
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        summary_df.to_excel(writer, sheet_name="Ringkasan", index=False)
        class_df.to_excel(writer, sheet_name="Per Kelas", index=False)
        age_df.to_excel(writer, sheet_name="Distribusi Umur", index=False)
    buffer.seek(0)
    return buffer.getvalue()
