"""
Document text extraction for requirement uploads.

    txt / md  → decoded as UTF-8
    pdf       → pypdf, page text joined by newlines
    xlsx      → openpyxl, one "Sheet: <name>" block per sheet, cells " | "-joined
    docx      → python-docx paragraphs and table rows

Validation failures raise FileParseError(status=400); a file that is
corrupt, encrypted or yields no text raises FileParseError(status=500).
Uploaded bytes are never written to disk.
"""

import io
import logging

import docx
import openpyxl
from pypdf import PdfReader

from app.core.exceptions import FileParseError

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = ("txt", "md", "pdf", "xlsx", "docx")
DEFAULT_MAX_BYTES = 10 * 1024 * 1024
SHEET_RULE = "=" * 50


def file_extension(filename: str) -> str:
    if not filename or "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} bytes"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / 1024 / 1024:.2f} MB"


def validate_upload(filename: str, size: int, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    """Check size and extension; return the lower-cased extension."""
    if size > max_bytes:
        raise FileParseError(
            f"File too large. Maximum file size is {max_bytes // (1024 * 1024)}MB. "
            f"Your file is {format_file_size(size)}.",
            status=400,
        )
    ext = file_extension(filename)
    if ext not in ALLOWED_EXTENSIONS:
        formats = ", ".join(f".{e}" for e in ALLOWED_EXTENSIONS)
        raise FileParseError(f"Unsupported file type. Please use: {formats}", status=400)
    return ext


# ── Readers ──────────────────────────────────────────────────────────────


def _read_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        raise FileParseError("Failed to read text file. It must be UTF-8 encoded.") from None


def _read_pdf(data: bytes) -> str:
    try:
        reader = PdfReader(io.BytesIO(data))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except Exception as exc:
        logger.warning("PDF parsing error: %s", exc)
        raise FileParseError(
            "Failed to parse PDF. The file may be corrupted, password-protected, "
            "or contain only images."
        ) from exc
    if not text.strip():
        raise FileParseError("PDF appears to be empty or contains only images")
    return text


def _cell_text(value) -> str:
    if value is None:
        return ""
    return str(value)


def _read_xlsx(data: bytes) -> str:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except Exception as exc:
        logger.warning("Excel parsing error: %s", exc)
        raise FileParseError(
            "Failed to parse Excel file. Only .xlsx is supported and the file may be "
            "corrupted or in an unsupported format."
        ) from exc

    blocks = []
    row_count = 0
    try:
        for sheet in workbook.worksheets:
            lines = [f"Sheet: {sheet.title}", SHEET_RULE, ""]
            for row in sheet.iter_rows(values_only=True):
                if all(cell is None for cell in row):
                    continue
                row_text = " | ".join(_cell_text(cell) for cell in row)
                if row_text.strip(" |"):
                    lines.append(row_text)
                    row_count += 1
            blocks.append("\n".join(lines))
    except Exception as exc:
        logger.warning("Excel sheet read error: %s", exc)
        raise FileParseError(
            "Failed to read Excel file contents. The workbook may be corrupted."
        ) from exc
    finally:
        workbook.close()

    if not row_count:
        raise FileParseError("Excel file appears to be empty")
    return "\n\n".join(blocks)


def _read_docx(data: bytes) -> str:
    try:
        document = docx.Document(io.BytesIO(data))
    except Exception as exc:
        logger.warning("DOCX parsing error: %s", exc)
        raise FileParseError(
            "Failed to parse DOCX file. The file may be corrupted or password-protected."
        ) from exc

    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells]
            if any(cells):
                lines.append(" | ".join(cells))

    text = "\n".join(lines)
    if not text.strip():
        raise FileParseError("DOCX file appears to be empty")
    return text


_READERS = {
    "txt": _read_text,
    "md": _read_text,
    "pdf": _read_pdf,
    "xlsx": _read_xlsx,
    "docx": _read_docx,
}


def extract_text(filename: str, data: bytes, max_bytes: int = DEFAULT_MAX_BYTES) -> str:
    """Validate an upload and return its text content."""
    ext = validate_upload(filename, len(data), max_bytes)
    content = _READERS[ext](data)
    logger.info("Parsed %s upload (%s, %d chars)", ext, format_file_size(len(data)), len(content))
    return content
