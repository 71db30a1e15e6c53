import io
import logging
import fitz  # PyMuPDF
from typing import Optional
from pypdf import PdfReader

logger = logging.getLogger(__name__)

TEXT_MIME_TYPES = ("application/json", "application/xml", "application/rtf")


class TextExtractionAgent:
    """Agent for turning stored document bytes into plain text."""

    def extract(self, data: bytes, mime_type: Optional[str]) -> str:
        """Extract plain text from document bytes.

        Never raises; unsupported or unreadable content yields an empty
        string.

        Args:
            data: Raw document bytes
            mime_type: MIME type recorded at upload

        Returns:
            Extracted text
        """
        mime_type = (mime_type or "").lower()

        if not data:
            return ""

        if "pdf" in mime_type:
            return self._extract_from_pdf(data)
        if mime_type.startswith("text/") or mime_type in TEXT_MIME_TYPES:
            return self._extract_from_text(data)

        logger.info(f"No text extractor for MIME type {mime_type or 'unknown'}")
        return ""

    def _extract_from_pdf(self, data: bytes) -> str:
        """Extract text from a PDF document.

        Args:
            data: PDF bytes

        Returns:
            Extracted text with page markers
        """
        full_text = ""

        try:
            # Extract with PyMuPDF (fitz)
            with fitz.open(stream=data, filetype="pdf") as doc:
                for page_num, page in enumerate(doc):
                    text = page.get_text()
                    full_text += f"\n\n--- Page {page_num + 1} ---\n\n{text}"
            return full_text

        except Exception as e:
            logger.error(f"Error extracting with PyMuPDF: {str(e)}")

        # Fallback to pypdf
        full_text = ""
        try:
            reader = PdfReader(io.BytesIO(data))
            for page_num, page in enumerate(reader.pages):
                text = page.extract_text() or ""
                full_text += f"\n\n--- Page {page_num + 1} ---\n\n{text}"
            return full_text

        except Exception as e2:
            logger.error(f"Error extracting with pypdf: {str(e2)}")
            return ""

    def _extract_from_text(self, data: bytes) -> str:
        """Decode a plain text document."""
        text = data.decode("utf-8", errors="replace")
        # Strip a UTF-8 byte order mark if present
        return text.lstrip("\ufeff")
