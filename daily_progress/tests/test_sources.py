from __future__ import annotations

from datetime import time
from pathlib import Path
from types import SimpleNamespace

import openpyxl
import pytest
import xlrd
from docx import Document
from PIL import Image

from daily_progress.task_extractor import pipeline, sources

BACKENDS = ["pypdf", "pdfminer", "pikepdf+pypdf", "pikepdf+pdfminer"]


@pytest.fixture()
def schedule_docx(tmp_path: Path) -> Path:
    path = tmp_path / "schedule.docx"
    document = Document()
    document.add_paragraph("Weekly Schedule")
    document.add_paragraph("8:30 - 10:30 (Fullstack work IDK)")
    document.add_paragraph("")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Time"
    table.cell(0, 1).text = "Monday"
    table.cell(1, 0).text = "12:00"
    table.cell(1, 1).text = "12:00 Lunch with team"
    document.save(str(path))
    return path


@pytest.fixture()
def schedule_xlsx(tmp_path: Path) -> Path:
    path = tmp_path / "schedule.xlsx"
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Weekly Schedule"])
    sheet.append(["Time", "Monday", "Tuesday"])
    sheet.append([time(8, 30), "Gym session", "RUN 101 RUN 101 RUN 101"])
    sheet.append(["Evening", "Read chapter 3", None])
    workbook.save(str(path))
    return path


def test_docx_lines_include_tables(schedule_docx: Path) -> None:
    lines = sources.produce_lines(schedule_docx)
    assert "8:30 - 10:30 (Fullstack work IDK)" in lines
    assert "12:00 Lunch with team" in lines
    entries = pipeline.extract_file(schedule_docx)
    assert [(entry.time_range, entry.task_name) for entry in entries] == [
        ("8:30 - 10:30", "Fullstack work IDK"),
        ("12:00", "Lunch with team"),
    ]


def test_xlsx_rows_use_spreadsheet_mode(schedule_xlsx: Path) -> None:
    rows = sources.produce_rows(schedule_xlsx)
    assert rows[1][:2] == ["Time", "Monday"]
    entries = pipeline.extract_file(schedule_xlsx)
    names = [entry.task_name for entry in entries]
    assert names[:2] == ["Gym session", "Read chapter 3"]
    assert "Weekly Schedule" not in names
    assert not any("RUN 101" in name for name in names)


def test_text_and_html_sources(tmp_path: Path) -> None:
    text_path = tmp_path / "today.txt"
    text_path.write_text("Today's Tasks\n9:00 Standup\n\nWrite report\n", encoding="utf-8")
    assert [entry.full_text for entry in pipeline.extract_file(text_path)] == [
        "9:00 (Standup)",
        "Write report",
    ]

    html_path = tmp_path / "plan.html"
    html_path.write_text(
        "<html><head><style>p {}</style></head><body>"
        "<h1>Weekly Schedule</h1><p>7:00-7:45 [Morning run]</p><p>Pending</p>"
        "</body></html>",
        encoding="utf-8",
    )
    entries = pipeline.extract_file(html_path)
    assert [entry.task_name for entry in entries] == ["Morning run"]


@pytest.mark.parametrize("name", ["clip.mp4", "old.doc", "notes"])
def test_unsupported_sources_are_rejected(tmp_path: Path, name: str) -> None:
    path = tmp_path / name
    path.write_bytes(b"\x00\x01")
    with pytest.raises(sources.UnsupportedSourceError):
        pipeline.extract_file(path)


def test_corrupt_docx_raises_decode_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.docx"
    path.write_bytes(b"not a zip archive")
    with pytest.raises(sources.SourceDecodeError):
        sources.produce_lines(path)


def test_image_sources_go_through_ocr(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    image_path = tmp_path / "scan.png"
    Image.new("RGB", (16, 16), "white").save(image_path)
    languages: list[str] = []

    def fake_ocr(image: Image.Image, lang: str) -> str:
        languages.append(lang)
        assert image.mode == "RGB"
        return "Weekly Schedule\n7:00 - 7:45 (Morning run)\nMonday\n"

    monkeypatch.setattr(sources.pytesseract, "image_to_string", fake_ocr)
    monkeypatch.setenv("TRACKER_OCR_LANG", "eng+deu")
    entries = pipeline.extract_file(image_path)
    assert [entry.task_name for entry in entries] == ["Morning run"]
    assert languages == ["eng+deu"]


def test_unreadable_image_raises_decode_error(tmp_path: Path) -> None:
    path = tmp_path / "photo.jpg"
    path.write_bytes(b"not really a jpeg")
    with pytest.raises(sources.SourceDecodeError):
        sources.produce_lines(path)


def test_legacy_xls_rows_match_xlsx_values(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    path = tmp_path / "old.xls"
    path.write_bytes(b"\xd0\xcf\x11\xe0")

    def cell(ctype: int, value: object) -> SimpleNamespace:
        return SimpleNamespace(ctype=ctype, value=value)

    grid = [
        [cell(xlrd.XL_CELL_TEXT, "Weekly Schedule")],
        [cell(xlrd.XL_CELL_TEXT, "Time"), cell(xlrd.XL_CELL_TEXT, "Monday")],
        [cell(xlrd.XL_CELL_DATE, 8.5 / 24), cell(xlrd.XL_CELL_TEXT, "Gym session")],
        [cell(xlrd.XL_CELL_NUMBER, 3.0), cell(xlrd.XL_CELL_EMPTY, "")],
    ]
    sheet = SimpleNamespace(nrows=len(grid), row=lambda index: grid[index])
    released: list[bool] = []
    book = SimpleNamespace(
        nsheets=1,
        datemode=0,
        sheet_by_index=lambda index: sheet,
        release_resources=lambda: released.append(True),
    )
    monkeypatch.setattr(sources.xlrd, "open_workbook", lambda filename: book)

    rows = sources.produce_rows(path)
    assert rows[2] == [time(8, 30), "Gym session"]
    assert rows[3] == [3, None]
    assert released == [True]
    assert [entry.task_name for entry in pipeline.extract_file(path)] == ["Gym session"]


def test_corrupt_xls_raises_decode_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.xls"
    path.write_bytes(b"not a workbook")
    with pytest.raises(sources.SourceDecodeError):
        sources.produce_rows(path)


def test_pdf_cascade_falls_through_to_next_backend(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf_path = tmp_path / "schedule.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\n")
    calls: list[str] = []

    def fake_read(reader: str, path: Path) -> str:
        calls.append(reader)
        if reader == "pypdf":
            raise RuntimeError("xref table broken")
        return "Weekly Schedule\n8:30 - 10:30 (Fullstack work IDK)\n"

    monkeypatch.setattr(sources, "_read_pdf", fake_read)
    result = sources.extract_pdf_text(pdf_path, min_chars=20, prefer_backends=BACKENDS)
    assert calls == ["pypdf", "pdfminer"]
    assert result.backend == "pdfminer"
    assert result.error is None
    assert "Fullstack" in result.text

    entries = pipeline.extract_file(pdf_path, pdf_backends=["pypdf", "pdfminer"])
    assert [entry.task_name for entry in entries] == ["Fullstack work IDK"]


def test_pdf_repair_backend_reads_repaired_copy(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf_path = tmp_path / "damaged.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\n")
    read_from: list[tuple[str, str]] = []

    def fake_repair(source: Path, target: Path) -> Path:
        target.write_bytes(source.read_bytes())
        return target

    def fake_read(reader: str, path: Path) -> str:
        read_from.append((reader, path.name))
        return "8:30 Gym" if path.name == "repaired.pdf" else ""

    monkeypatch.setattr(sources, "_repair_pdf", fake_repair)
    monkeypatch.setattr(sources, "_read_pdf", fake_read)
    result = sources.extract_pdf_text(pdf_path, min_chars=5, prefer_backends=BACKENDS)
    assert result.backend == "pikepdf+pypdf"
    assert read_from == [
        ("pypdf", "damaged.pdf"),
        ("pdfminer", "damaged.pdf"),
        ("pypdf", "repaired.pdf"),
    ]


def test_short_pdf_text_is_kept_after_all_backends(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf_path = tmp_path / "short.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\n")
    monkeypatch.setattr(sources, "_read_pdf", lambda reader, path: "8:30 Gym")
    assert sources.produce_lines(pdf_path, pdf_backends=["pypdf", "pdfminer"]) == ["8:30 Gym"]


def test_pdf_without_text_layer_yields_no_lines(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf_path = tmp_path / "scan.pdf"
    pdf_path.write_bytes(b"%PDF-1.4\n")
    monkeypatch.setattr(sources, "_read_pdf", lambda reader, path: "")
    result = sources.extract_pdf_text(pdf_path, prefer_backends=["pypdf", "pdfminer"])
    assert result == sources.PdfText()
    assert sources.produce_lines(pdf_path, pdf_backends=["pypdf"]) == []


def test_pdf_failing_every_backend_raises(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    pdf_path = tmp_path / "broken.pdf"
    pdf_path.write_bytes(b"garbage")

    def failing_read(reader: str, path: Path) -> str:
        raise RuntimeError(f"{reader} cannot parse")

    monkeypatch.setattr(sources, "_read_pdf", failing_read)
    with pytest.raises(sources.SourceDecodeError, match="pdfminer cannot parse"):
        sources.produce_lines(pdf_path, pdf_backends=["pypdf", "pdfminer"])


def test_pdf_backend_order_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_PDF_BACKENDS", "pdfminer, pypdf,pdfminer")
    assert sources.pdf_backend_order() == ["pdfminer", "pypdf"]
    assert sources.pdf_backend_order(["pypdf"]) == ["pypdf"]
    monkeypatch.setenv("TRACKER_PDF_BACKENDS", " , ")
    assert sources.pdf_backend_order() == list(sources.DEFAULT_PDF_BACKENDS)


def test_min_pdf_chars_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRACKER_MIN_PDF_CHARS", "5")
    assert sources.resolve_min_pdf_chars(None) == 5
    assert sources.resolve_min_pdf_chars(-3) == 0
    monkeypatch.setenv("TRACKER_MIN_PDF_CHARS", "lots")
    assert sources.resolve_min_pdf_chars(None) == sources.DEFAULT_MIN_PDF_CHARS
