"""Attachment text extraction.

Fetches the attachment over plain HTTP and decodes it by MIME type:
  text/plain, text/csv, text/markdown -> UTF-8 decode
  text/html                           -> trafilatura main text, BS4 fallback
  OOXML Word                          -> python-docx paragraphs + table cells
  OOXML spreadsheet                   -> openpyxl, one CSV block per sheet
  application/pdf                     -> pypdf text layer
Images, legacy .doc/.xls and PDFs without a text layer yield PartialExtraction.
Nothing raised inside extract_content escapes it.
"""

import csv
import io
import logging
import math
import re
from datetime import datetime, timezone

import requests
import trafilatura
from bs4 import BeautifulSoup
from docx import Document
from openpyxl import load_workbook
from pypdf import PdfReader

from apps.sangam.errors import ExtractionError
from apps.sangam.schemas.sangam import (
    Attachment,
    ExtractedContent,
    ExtractionMetadata,
    PartialExtraction,
)

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0
USER_AGENT = "Sangam-Extractor/1.0"

DOCX_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
LEGACY_DOC_TYPE = "application/msword"
LEGACY_XLS_TYPE = "application/vnd.ms-excel"
PDF_TYPE = "application/pdf"

TEXT_TYPES = frozenset({"text/plain", "text/csv", "text/markdown"})
HTML_TYPES = frozenset({"text/html"})
IMAGE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/bmp",
        "image/tiff",
        "image/webp",
    }
)
LEGACY_TYPES = frozenset({LEGACY_DOC_TYPE, LEGACY_XLS_TYPE})

PROCESSABLE_TYPES = frozenset(
    TEXT_TYPES | HTML_TYPES | IMAGE_TYPES | LEGACY_TYPES | {PDF_TYPE, DOCX_TYPE, XLSX_TYPE}
)

MIN_USEFUL_CHARS = 20
MIN_USEFUL_WORDS = 5


def _normalize_mime(file_type: str | None) -> str:
    return (file_type or "").split(";", 1)[0].strip().lower()


def is_processable(file_type: str | None) -> bool:
    return _normalize_mime(file_type) in PROCESSABLE_TYPES


def extract_main_text(html: str) -> str:
    """
    Extract main text from HTML.
    Primary: trafilatura.extract(include_comments=False, include_tables=True).
    Fallback: BeautifulSoup get_text if trafilatura returns None/empty.
    """
    result = trafilatura.extract(html, include_comments=False, include_tables=True)
    if result and result.strip():
        return result.strip()

    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(["script", "style", "noscript"]):
        tag.decompose()
    text = soup.get_text(separator=" ")
    return re.sub(r"\s+", " ", text).strip()


def decode_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")


def decode_docx(data: bytes) -> str:
    """Paragraph text followed by table cell text, one line each."""
    doc = Document(io.BytesIO(data))
    lines = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def decode_xlsx(data: bytes) -> str:
    """Render every sheet as 'Sheet: <name>' followed by its rows as CSV."""
    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        out = []
        for ws in wb.worksheets:
            buf = io.StringIO()
            writer = csv.writer(buf, lineterminator="\n")
            for row in ws.iter_rows(values_only=True):
                writer.writerow(["" if v is None else v for v in row])
            out.append(f"Sheet: {ws.title}\n{buf.getvalue()}\n\n")
        return "".join(out).strip()
    finally:
        wb.close()


def decode_pdf(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    return "\n".join((page.extract_text() or "") for page in reader.pages).strip()


def is_content_useful(content: ExtractedContent) -> bool:
    """Heuristic: enough characters, enough words, and at least one letter run or digit."""
    text = content.text
    if len(text) < MIN_USEFUL_CHARS:
        return False
    words = [w for w in text.split() if len(w) > 1]
    if len(words) < MIN_USEFUL_WORDS:
        return False
    return bool(re.search(r"[A-Za-z]{2,}", text) or re.search(r"\d", text))


def format_file_size(num_bytes: int) -> str:
    """Human-readable size: 0 Bytes, 512 Bytes, 1.5 KB, 2 MB, ..."""
    if num_bytes <= 0:
        return "0 Bytes"
    sizes = ("Bytes", "KB", "MB", "GB")
    i = min(int(math.floor(math.log(num_bytes) / math.log(1024))), len(sizes) - 1)
    value = round(num_bytes / (1024**i), 2)
    return f"{value:g} {sizes[i]}"


def create_content_summary(content: ExtractedContent) -> str:
    """Document header + full text, as shown when a document is cited."""
    m = content.metadata
    return (
        f"Document: {m.file_name}\n"
        f"Type: {m.file_type}\n"
        f"Size: {format_file_size(m.file_size)}\n"
        f"Content: {content.text}"
    )


class ContentExtractor:
    """Turns an Attachment into ExtractedContent, PartialExtraction or None."""

    def __init__(self, fetch_timeout: float = DEFAULT_FETCH_TIMEOUT) -> None:
        self.fetch_timeout = fetch_timeout

    def fetch(self, url: str) -> bytes:
        """GET the attachment body. Raises ExtractionError on network error or non-2xx."""
        try:
            resp = requests.get(
                url,
                timeout=self.fetch_timeout,
                headers={"User-Agent": USER_AGENT},
                allow_redirects=True,
            )
        except requests.RequestException as e:
            raise ExtractionError(f"fetch failed: {e}") from e
        if not resp.ok:
            raise ExtractionError(f"fetch failed: HTTP {resp.status_code}")
        return resp.content

    def extract_content(self, attachment: Attachment) -> ExtractedContent | PartialExtraction | None:
        """
        Extract text from attachment. Returns:
          ExtractedContent   text was obtained
          PartialExtraction  recognised type, no text obtainable
          None               unsupported type, fetch/decoder failure, or empty text
        """
        mime = _normalize_mime(attachment.file_type)
        metadata = ExtractionMetadata(
            file_name=attachment.file_name,
            file_type=attachment.file_type,
            file_size=attachment.file_size,
            extracted_at=datetime.now(timezone.utc),
        )
        if mime not in PROCESSABLE_TYPES:
            logger.info("extract: unsupported type file=%s type=%s", attachment.file_name, attachment.file_type)
            return None
        if mime in IMAGE_TYPES:
            return PartialExtraction(metadata=metadata, reason="image text recognition not supported")
        if mime in LEGACY_TYPES:
            return PartialExtraction(metadata=metadata, reason="legacy binary format not supported")
        if not attachment.file_url:
            logger.info("extract: no url file=%s", attachment.file_name)
            return None

        try:
            data = self.fetch(attachment.file_url)
            text = self._decode(mime, data)
        except Exception as e:
            logger.warning(
                "extract: failed file=%s type=%s err=%s", attachment.file_name, mime, e, exc_info=True
            )
            return None

        text = text.strip()
        if not text:
            if mime == PDF_TYPE:
                return PartialExtraction(metadata=metadata, reason="pdf has no text layer")
            return None
        logger.info("extract: ok file=%s type=%s chars=%d", attachment.file_name, mime, len(text))
        return ExtractedContent(text=text, metadata=metadata)

    def _decode(self, mime: str, data: bytes) -> str:
        if mime in TEXT_TYPES:
            return decode_text(data)
        if mime in HTML_TYPES:
            return extract_main_text(decode_text(data))
        if mime == DOCX_TYPE:
            return decode_docx(data)
        if mime == XLSX_TYPE:
            return decode_xlsx(data)
        if mime == PDF_TYPE:
            return decode_pdf(data)
        raise ExtractionError(f"no decoder for {mime}")
