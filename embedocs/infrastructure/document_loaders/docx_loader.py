from pathlib import Path

from docx import Document


class DocxLoader:
    """Word documents; heading styles become markdown headers."""

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() == ".docx"

    def load(self, file_path: Path) -> str:
        doc = Document(file_path)
        blocks = []
        for paragraph in doc.paragraphs:
            text = paragraph.text.strip()
            if not text:
                continue
            style = paragraph.style.name if paragraph.style is not None else ""
            if style.startswith("Heading"):
                level = style.rsplit(" ", 1)[-1]
                depth = int(level) if level.isdigit() else 1
                blocks.append(f"{'#' * min(depth, 6)} {text}")
            elif style == "Title":
                blocks.append(f"# {text}")
            else:
                blocks.append(text)
        return "\n\n".join(blocks)
