
import asyncio
import io
import zipfile
from pdfminer.high_level import extract_text as pdf_extract
from pdfminer.pdfparser import PDFSyntaxError
from docx import Document as DocxDocument
from docx.opc.exceptions import PackageNotFoundError
import chardet

from ..errors import TextExtractionError

def _decode(content: bytes) -> str:
    enc = chardet.detect(content).get("encoding") or "utf-8"
    try:
        return content.decode(enc, errors="ignore")
    except LookupError:
        # chardet can name codecs Python does not ship
        return content.decode("utf-8", errors="ignore")

def _extract_sync(filename: str, content: bytes) -> str:
    name = filename.lower()
    if name.endswith(".pdf"):
        try:
            return pdf_extract(io.BytesIO(content))
        except PDFSyntaxError as e:
            raise TextExtractionError(f"Unreadable PDF: {filename}", {"error": str(e)}) from e
    if name.endswith(".docx"):
        try:
            doc = DocxDocument(io.BytesIO(content))
        except (PackageNotFoundError, zipfile.BadZipFile, ValueError, KeyError) as e:
            raise TextExtractionError(f"Unreadable DOCX: {filename}", {"error": str(e)}) from e
        return "\n".join(p.text for p in doc.paragraphs)
    return _decode(content)

async def extract_text(filename: str, content: bytes) -> str:
    """Plain text from an uploaded PDF, DOCX or text file (parsers run in a worker thread)."""
    return await asyncio.to_thread(_extract_sync, filename, content)
