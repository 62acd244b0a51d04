"""
Tests — requirement document upload and text extraction.

Word and Excel fixtures are built in memory with python-docx / openpyxl.
"""

import io

import docx
import openpyxl
import pytest

from app.core.exceptions import FileParseError
from app.services import file_parser


def _docx_bytes(paragraphs, table_rows=()):
    document = docx.Document()
    for text in paragraphs:
        document.add_paragraph(text)
    if table_rows:
        table = document.add_table(rows=len(table_rows), cols=len(table_rows[0]))
        for r, row in enumerate(table_rows):
            for c, value in enumerate(row):
                table.cell(r, c).text = value
    buf = io.BytesIO()
    document.save(buf)
    return buf.getvalue()


def _xlsx_bytes(sheets):
    workbook = openpyxl.Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(row)
    buf = io.BytesIO()
    workbook.save(buf)
    return buf.getvalue()


def _upload(client, headers, filename, data):
    return client.post(
        "/api/v1/ai/parse-file",
        data={"file": (io.BytesIO(data), filename)},
        headers=headers,
        content_type="multipart/form-data",
    )


class TestValidateUpload:
    def test_extension_case_insensitive(self):
        assert file_parser.validate_upload("Spec.MD", 10) == "md"

    def test_unsupported_type(self):
        with pytest.raises(FileParseError) as exc:
            file_parser.validate_upload("diagram.png", 10)
        assert exc.value.status == 400
        assert str(exc.value) == "Unsupported file type. Please use: .txt, .md, .pdf, .xlsx, .docx"

    def test_too_large(self):
        with pytest.raises(FileParseError) as exc:
            file_parser.validate_upload("big.txt", 11 * 1024 * 1024)
        assert exc.value.status == 400
        assert str(exc.value).startswith("File too large. Maximum file size is 10MB.")
        assert "11.00 MB" in str(exc.value)

    @pytest.mark.parametrize("size,text", [
        (512, "512 bytes"),
        (2048, "2.0 KB"),
        (3 * 1024 * 1024, "3.00 MB"),
    ])
    def test_format_file_size(self, size, text):
        assert file_parser.format_file_size(size) == text


class TestReaders:
    def test_docx_paragraphs_and_tables(self):
        data = _docx_bytes(
            ["Checkout requirements", "", "Users pay by card"],
            table_rows=[("Feature", "Priority"), ("Refunds", "High")],
        )
        text = file_parser.extract_text("reqs.docx", data)
        assert text.splitlines() == [
            "Checkout requirements",
            "Users pay by card",
            "Feature | Priority",
            "Refunds | High",
        ]

    def test_empty_docx(self):
        with pytest.raises(FileParseError) as exc:
            file_parser.extract_text("blank.docx", _docx_bytes([]))
        assert exc.value.status == 500
        assert str(exc.value) == "DOCX file appears to be empty"

    def test_xlsx_sheets(self):
        data = _xlsx_bytes({
            "Stories": [("ID", "Title"), (1, "Login"), (None, None)],
            "Notes": [("Keep it simple",)],
        })
        text = file_parser.extract_text("backlog.xlsx", data)
        assert text.startswith(
            f"Sheet: Stories\n{file_parser.SHEET_RULE}\n\nID | Title\n1 | Login\n\nSheet: Notes"
        )
        assert text.endswith("Keep it simple")

    def test_empty_xlsx(self):
        with pytest.raises(FileParseError, match="Excel file appears to be empty"):
            file_parser.extract_text("empty.xlsx", _xlsx_bytes({"Sheet1": []}))

    def test_unreadable_sheet(self, monkeypatch):
        class _DamagedWorkbook:
            closed = False

            @property
            def worksheets(self):
                raise KeyError("xl/worksheets/sheet1.xml")

            def close(self):
                self.closed = True

        workbook = _DamagedWorkbook()
        monkeypatch.setattr(file_parser.openpyxl, "load_workbook", lambda *a, **kw: workbook)
        with pytest.raises(FileParseError) as exc:
            file_parser.extract_text("damaged.xlsx", b"PK\x03\x04")
        assert exc.value.status == 500
        assert str(exc.value).startswith("Failed to read Excel file contents.")
        assert workbook.closed

    def test_corrupt_pdf(self):
        with pytest.raises(FileParseError) as exc:
            file_parser.extract_text("broken.pdf", b"not a pdf at all")
        assert exc.value.status == 500

    def test_non_utf8_text(self):
        with pytest.raises(FileParseError):
            file_parser.extract_text("latin.txt", "café".encode("latin-1"))


class TestParseFileEndpoint:
    def test_text_upload(self, client, auth_headers):
        res = _upload(client, auth_headers, "notes.md", b"# Goals\n- ship it")
        assert res.status_code == 200
        assert res.get_json()["content"] == "# Goals\n- ship it"

    def test_docx_upload(self, client, auth_headers):
        res = _upload(client, auth_headers, "reqs.docx", _docx_bytes(["Scope: MVP"]))
        assert res.status_code == 200
        assert res.get_json()["content"] == "Scope: MVP"

    def test_no_file(self, client, auth_headers):
        res = client.post("/api/v1/ai/parse-file", data={},
                          headers=auth_headers, content_type="multipart/form-data")
        assert res.status_code == 400
        assert res.get_json()["error"] == "No file provided"

    def test_unsupported_type(self, client, auth_headers):
        res = _upload(client, auth_headers, "diagram.png", b"\x89PNG")
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_FILE_REJECTED"

    def test_over_configured_limit(self, client, auth_headers, app):
        previous = app.config["PARSE_FILE_MAX_BYTES"]
        app.config["PARSE_FILE_MAX_BYTES"] = 1024
        try:
            res = _upload(client, auth_headers, "big.txt", b"x" * 2048)
        finally:
            app.config["PARSE_FILE_MAX_BYTES"] = previous
        assert res.status_code == 400
        assert res.get_json()["error"].startswith("File too large.")

    def test_requires_auth(self, client):
        res = client.post("/api/v1/ai/parse-file",
                          data={"file": (io.BytesIO(b"x"), "a.txt")},
                          content_type="multipart/form-data")
        assert res.status_code == 401
