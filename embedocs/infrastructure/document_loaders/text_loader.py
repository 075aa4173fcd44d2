from pathlib import Path


class TextLoader:
    """Plain text, markdown and reStructuredText."""

    EXTENSIONS = {".txt", ".md", ".markdown", ".rst"}

    def supports(self, file_path: Path) -> bool:
        return file_path.suffix.lower() in self.EXTENSIONS

    def load(self, file_path: Path) -> str:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        return text.lstrip("\ufeff").replace("\r\n", "\n")
