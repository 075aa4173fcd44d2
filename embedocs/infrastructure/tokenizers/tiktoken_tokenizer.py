import logging
from functools import cached_property

import tiktoken

logger = logging.getLogger(__name__)


class TiktokenTokenizer:
    """Token counter backed by a tiktoken encoding."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self._encoding_name = encoding_name

    @cached_property
    def encoding(self) -> tiktoken.Encoding:
        logger.info(f"Loading tokenizer encoding: {self._encoding_name}")
        return tiktoken.get_encoding(self._encoding_name)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self.encoding.encode(text, disallowed_special=()))
