from pathlib import Path

from pypdf import PdfReader


class PDFLoader:
    """PDF text extraction, one paragraph block per page."""

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".pdf"

    def load(self, file_path: Path) -> str:
        reader = PdfReader(file_path)
        pages = []
        for page in reader.pages:
            text = page.extract_text() or ""
            # Re-join words hyphenated across line breaks.
            text = text.replace("-\n", "").strip()
            if text:
                pages.append(text)
        return "\n\n".join(pages)
