import logging
import re
from pathlib import Path
from typing import Iterator, Optional

from embedocs.core.models.document import Document, DocumentMetadata

from .pdf_loader import PDFLoader
from .docx_loader import DocxLoader
from .text_loader import TextLoader

logger = logging.getLogger(__name__)

_TITLE = re.compile(r"^#{1,6}\s+(.+?)\s*#*\s*$", re.M)
_RST_TITLE = re.compile(r"^(\S[^\n]*)\n([=\-~^*#])\2{2,}\s*$", re.M)


class CompositeLoader:
    """Load a documentation tree into Documents."""

    def __init__(self, default_product: str = "docs", base_url: str = ""):
        self._loaders = [
            PDFLoader(),
            DocxLoader(),
            TextLoader(),
        ]
        self._default_product = default_product
        self._base_url = base_url

    def supports(self, file_path: Path) -> bool:
        return any(loader.supports(file_path) for loader in self._loaders)

    def load(self, file_path: Path) -> Optional[str]:
        for loader in self._loaders:
            if loader.supports(file_path):
                try:
                    return loader.load(file_path)
                except Exception as e:
                    logger.error(f"Failed to load {file_path}: {e}")
                    return None
        return None

    def load_directory(self, root: Path) -> Iterator[Document]:
        """Yield a Document for every supported file under root, sorted by path."""
        if not root.exists():
            logger.error(f"Docs path not found: {root}")
            return

        for file_path in sorted(p for p in root.rglob("*") if p.is_file()):
            if not self.supports(file_path):
                continue

            content = self.load(file_path)
            if not content or not content.strip():
                logger.debug(f"Skip empty: {file_path}")
                continue

            yield self.to_document(file_path.relative_to(root), content)

    def to_document(self, relative_path: Path, content: str) -> Document:
        path = relative_path.as_posix()
        parts = relative_path.parts
        product = parts[0] if len(parts) > 1 else self._default_product

        return Document(
            id=path,
            content=content,
            metadata=DocumentMetadata(
                path=path,
                product=product,
                title=self._title(content, relative_path),
                url=f"{self._base_url.rstrip('/')}/{path}" if self._base_url else "",
            ),
        )

    @staticmethod
    def _title(content: str, relative_path: Path) -> str:
        head = content[:5000]
        for pattern in (_TITLE, _RST_TITLE):
            match = pattern.search(head)
            if match:
                return match.group(1).strip()
        return relative_path.stem.replace("_", " ").replace("-", " ")
