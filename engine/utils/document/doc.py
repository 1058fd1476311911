"""
Quote document decoding.

Turns an uploaded file's bytes into something the completion service can
read: plain text for spreadsheets and PDFs, or the raw image with its MIME
type for photographed quotes. No interpretation happens here.

pip install pandas openpyxl xlrd pdfplumber
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import PurePath

import pandas as pd
import pdfplumber

from utils.core.log import get_logger
from utils.core.errors import ExtractionError, UnsupportedFormat

IMAGE_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".webp": "image/webp",
    ".gif": "image/gif",
}
IMAGE_SUFFIXES = tuple(IMAGE_MIME_TYPES)
SPREADSHEET_SUFFIXES = (".xlsx", ".xls")
PDF_SUFFIXES = (".pdf",)
SUPPORTED_SUFFIXES = IMAGE_SUFFIXES + SPREADSHEET_SUFFIXES + PDF_SUFFIXES

DEFAULT_IMAGE_MIME = "image/png"


@dataclass(frozen=True)
class TextContent:
    text: str


@dataclass(frozen=True)
class ImageContent:
    data: bytes
    mime_type: str


def _suffix(file_name: str) -> str:
    return PurePath(file_name or "").suffix.lower()


def content_kind(file_name: str) -> str:
    """
    Return "image", "spreadsheet" or "pdf" for a supported file name.

    Raises:
        UnsupportedFormat: for any other suffix.
    """
    suffix = _suffix(file_name)
    if suffix in IMAGE_SUFFIXES:
        return "image"
    if suffix in SPREADSHEET_SUFFIXES:
        return "spreadsheet"
    if suffix in PDF_SUFFIXES:
        return "pdf"
    raise UnsupportedFormat(file_name, SUPPORTED_SUFFIXES)


def is_supported(file_name: str) -> bool:
    return _suffix(file_name) in SUPPORTED_SUFFIXES


def image_mime_type(file_name: str, declared: str | None = None) -> str:
    if declared and declared.startswith("image/"):
        return declared
    return IMAGE_MIME_TYPES.get(_suffix(file_name), DEFAULT_IMAGE_MIME)


def extract_text_from_spreadsheet(data: bytes, file_name: str = "") -> str:
    """First sheet of the workbook as comma-separated text."""
    engine = "xlrd" if _suffix(file_name) == ".xls" else "openpyxl"
    df = pd.read_excel(
        io.BytesIO(data),
        sheet_name=0,
        header=None,
        dtype=str,
        keep_default_na=False,
        engine=engine,
    )
    return df.to_csv(index=False, header=False)


def extract_text_from_pdf(data: bytes) -> str:
    """Text of every page, in page order, joined by newlines."""
    with pdfplumber.open(io.BytesIO(data)) as pdf:
        return "\n".join(page.extract_text() or "" for page in pdf.pages)


def extract_content(
    file_name: str, data: bytes, mime_type: str | None = None
) -> TextContent | ImageContent:
    """
    Decode an uploaded quote.

    Args:
        file_name: Original file name; its suffix picks the decoder.
        data: Raw file bytes.
        mime_type: Declared MIME type, used for images when present.

    Raises:
        UnsupportedFormat: suffix outside SUPPORTED_SUFFIXES.
        ExtractionError: the spreadsheet/PDF library could not read the file.
    """
    logger = get_logger()
    kind = content_kind(file_name)

    if kind == "image":
        mime = image_mime_type(file_name, mime_type)
        logger.debug(f"Image quote {file_name} ({mime}, {len(data)} bytes)")
        return ImageContent(data=data, mime_type=mime)

    try:
        if kind == "spreadsheet":
            text = extract_text_from_spreadsheet(data, file_name)
        else:
            text = extract_text_from_pdf(data)
    except Exception as e:
        logger.error(f"Failed to decode {file_name}: {e}")
        raise ExtractionError(f"Could not read {file_name}: {e}") from e

    logger.debug(f"Extracted {len(text)} chars from {kind} {file_name}")
    return TextContent(text=text)
