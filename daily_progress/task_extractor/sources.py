"""Decoders that flatten uploaded documents into raw text lines."""
from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, time
from pathlib import Path

import openpyxl
import pytesseract
import xlrd
from bs4 import BeautifulSoup
from docx import Document
from pdfminer.high_level import extract_text
from pikepdf import Pdf
from PIL import Image
from pypdf import PdfReader

logger = logging.getLogger(__name__)

DEFAULT_PDF_BACKENDS = ("pypdf", "pdfminer", "pikepdf+pypdf", "pikepdf+pdfminer")
REPAIR_PREFIX = "pikepdf+"
DEFAULT_MIN_PDF_CHARS = 20
DEFAULT_OCR_LANGUAGE = "eng"

TEXT_EXTENSIONS = {".txt", ".md", ".markdown"}
HTML_EXTENSIONS = {".html", ".htm"}
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif"}
SPREADSHEET_EXTENSIONS = {".xlsx", ".xlsm", ".xls"}
SUPPORTED_EXTENSIONS = {
    *TEXT_EXTENSIONS,
    *HTML_EXTENSIONS,
    *IMAGE_EXTENSIONS,
    *SPREADSHEET_EXTENSIONS,
    ".pdf",
    ".docx",
}


class UnsupportedSourceError(ValueError):
    """Raised for uploads whose type has no decoder."""


class SourceDecodeError(RuntimeError):
    """Raised when a decoder cannot read a supported file."""


@dataclass
class PdfText:
    text: str = ""
    backend: str | None = None
    error: str | None = None


def is_spreadsheet(path: Path) -> bool:
    return path.suffix.lower() in SPREADSHEET_EXTENSIONS


def ensure_supported(path: Path) -> str:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_EXTENSIONS:
        raise UnsupportedSourceError(f"Unsupported file type: {suffix or path.name}")
    return suffix


def pdf_backend_order(prefer_backends: Iterable[str] | None = None) -> list[str]:
    """Backends to try: explicit list, then ``TRACKER_PDF_BACKENDS``, then defaults."""

    names = list(prefer_backends or os.environ.get("TRACKER_PDF_BACKENDS", "").split(","))
    order = list(dict.fromkeys(name.strip() for name in names if name and name.strip()))
    return order or list(DEFAULT_PDF_BACKENDS)


def resolve_min_pdf_chars(value: int | None) -> int:
    if value is None:
        raw = os.environ.get("TRACKER_MIN_PDF_CHARS", "")
        try:
            value = int(raw) if raw else DEFAULT_MIN_PDF_CHARS
        except ValueError:
            logger.debug("Invalid TRACKER_MIN_PDF_CHARS value: %s", raw)
            value = DEFAULT_MIN_PDF_CHARS
    return max(value, 0)


def extract_pdf_text(
    path: str | Path,
    *,
    min_chars: int = DEFAULT_MIN_PDF_CHARS,
    prefer_backends: Iterable[str] | None = None,
) -> PdfText:
    """Try each backend in turn until one yields at least ``min_chars`` of text.

    A ``pikepdf+<reader>`` backend rewrites the file with pikepdf first and
    reads the repaired copy. The longest text seen is kept even when it falls
    short of ``min_chars``; ``error`` is only set when no backend produced text.
    """

    pdf_path = Path(path)
    best = PdfText()
    last_error: str | None = None
    with tempfile.TemporaryDirectory(prefix="tracker_pdf_") as tmp_dir:
        repaired: Path | None = None
        for backend in pdf_backend_order(prefer_backends):
            reader = backend.removeprefix(REPAIR_PREFIX)
            try:
                target = pdf_path
                if reader != backend:
                    if repaired is None:
                        repaired = _repair_pdf(pdf_path, Path(tmp_dir) / "repaired.pdf")
                    target = repaired
                text = _read_pdf(reader, target)
            except RuntimeError as exc:
                logger.debug("PDF backend %s failed for %s: %s", backend, pdf_path.name, exc)
                last_error = f"{backend}: {exc}"
                continue
            if len(text.strip()) > len(best.text.strip()):
                best = PdfText(text, backend)
            if len(best.text.strip()) >= min_chars:
                break
    if not best.text.strip():
        return PdfText(error=last_error)
    return best


def _read_pdf(reader: str, path: Path) -> str:
    try:
        if reader == "pypdf":
            return "\n".join(page.extract_text() or "" for page in PdfReader(str(path)).pages)
        if reader == "pdfminer":
            return extract_text(str(path)) or ""
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(str(exc)) from exc
    raise RuntimeError(f"unknown backend: {reader}")


def _repair_pdf(source: Path, target: Path) -> Path:
    try:
        with Pdf.open(str(source)) as pdf:
            pdf.save(str(target))
    except Exception as exc:  # pragma: no cover - upstream errors vary
        raise RuntimeError(f"pikepdf repair failed: {exc}") from exc
    return target


def read_pdf_lines(
    path: Path,
    *,
    min_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> list[str]:
    result = extract_pdf_text(
        path,
        min_chars=resolve_min_pdf_chars(min_chars),
        prefer_backends=pdf_backends,
    )
    if result.text:
        logger.debug("PDF %s decoded with %s", path.name, result.backend)
        return result.text.splitlines()
    if result.error:
        raise SourceDecodeError(f"Could not read PDF {path.name}: {result.error}")
    logger.info("PDF %s has no text layer", path.name)
    return []


def resolve_ocr_language(value: str | None = None) -> str:
    return value or os.environ.get("TRACKER_OCR_LANG") or DEFAULT_OCR_LANGUAGE


def read_image_lines(path: Path, *, lang: str | None = None) -> list[str]:
    """OCR a scanned schedule with Tesseract."""

    try:
        with Image.open(path) as image:
            text = pytesseract.image_to_string(image.convert("RGB"), lang=resolve_ocr_language(lang))
    except (OSError, RuntimeError) as exc:
        raise SourceDecodeError(f"Could not read image {path.name}: {exc}") from exc
    return text.splitlines()


def read_docx_lines(path: Path) -> list[str]:
    try:
        document = Document(str(path))
    except Exception as exc:
        raise SourceDecodeError(f"Could not read DOCX {path.name}: {exc}") from exc
    lines = [paragraph.text for paragraph in document.paragraphs]
    for table in document.tables:
        for row in table.rows:
            for cell in row.cells:
                lines.extend(paragraph.text for paragraph in cell.paragraphs)
    return lines


def read_html_lines(path: Path) -> list[str]:
    text = path.read_text(encoding="utf-8", errors="ignore")
    soup = BeautifulSoup(text, "lxml")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text("\n").splitlines()


def read_text_lines(path: Path) -> list[str]:
    return path.read_text(encoding="utf-8", errors="ignore").splitlines()


def produce_rows(path: str | Path) -> list[list[object]]:
    """Return the cell values of the first worksheet, row by row."""

    sheet_path = Path(path)
    suffix = ensure_supported(sheet_path)
    if suffix not in SPREADSHEET_EXTENSIONS:
        raise UnsupportedSourceError(f"Not a spreadsheet: {sheet_path.name}")
    if suffix == ".xls":
        return _legacy_workbook_rows(sheet_path)
    try:
        workbook = openpyxl.load_workbook(str(sheet_path), read_only=True, data_only=True)
    except Exception as exc:
        raise SourceDecodeError(f"Could not read workbook {sheet_path.name}: {exc}") from exc
    try:
        if not workbook.worksheets:
            return []
        sheet = workbook.worksheets[0]
        return [list(row) for row in sheet.iter_rows(values_only=True)]
    finally:
        workbook.close()


def _legacy_workbook_rows(path: Path) -> list[list[object]]:
    try:
        book = xlrd.open_workbook(str(path))
    except Exception as exc:
        raise SourceDecodeError(f"Could not read workbook {path.name}: {exc}") from exc
    try:
        if book.nsheets == 0:
            return []
        sheet = book.sheet_by_index(0)
        return [
            [_legacy_cell_value(cell, book.datemode) for cell in sheet.row(index)]
            for index in range(sheet.nrows)
        ]
    finally:
        book.release_resources()


def _legacy_cell_value(cell: xlrd.sheet.Cell, datemode: int) -> object:
    """Map an xlrd cell onto the values openpyxl would report."""

    if cell.ctype in (xlrd.XL_CELL_EMPTY, xlrd.XL_CELL_BLANK):
        return None
    if cell.ctype == xlrd.XL_CELL_DATE:
        year, month, day, hour, minute, second = xlrd.xldate_as_tuple(cell.value, datemode)
        if year == 0:
            return time(hour, minute, second)
        return datetime(year, month, day, hour, minute, second)
    if cell.ctype == xlrd.XL_CELL_NUMBER and float(cell.value).is_integer():
        return int(cell.value)
    return cell.value


def cell_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, time):
        return f"{value.hour}:{value.minute:02d}"
    return str(value)


def produce_lines(
    path: str | Path,
    *,
    min_pdf_chars: int | None = None,
    pdf_backends: Iterable[str] | None = None,
) -> list[str]:
    source = Path(path)
    suffix = ensure_supported(source)
    if suffix == ".pdf":
        return read_pdf_lines(source, min_chars=min_pdf_chars, pdf_backends=pdf_backends)
    if suffix == ".docx":
        return read_docx_lines(source)
    if suffix in IMAGE_EXTENSIONS:
        return read_image_lines(source)
    if suffix in HTML_EXTENSIONS:
        return read_html_lines(source)
    if suffix in SPREADSHEET_EXTENSIONS:
        return [" ".join(cell_text(cell) for cell in row) for row in produce_rows(source)]
    return read_text_lines(source)
