"""Key extraction from list responses."""

from abc import ABC, abstractmethod
from typing import List

from ..utils.logging import get_logger


class KeyExtractor(ABC):
    """Pulls object keys out of a list response body."""

    @abstractmethod
    def extract(self, text: str) -> List[str]:
        pass


class TagScanKeyExtractor(KeyExtractor):
    """Scans for literal ``<Key>``/``</Key>`` markers.

    Not an XML parser: entities are not decoded and nesting is ignored.
    Truncated or malformed markup yields a shorter list instead of an error.
    """

    def __init__(self, start_tag: str = "<Key>", end_tag: str = "</Key>"):
        self.start_tag = start_tag
        self.end_tag = end_tag
        self.logger = get_logger(self.__class__.__name__)

    def extract(self, text: str) -> List[str]:
        keys: List[str] = []
        cursor = 0

        while True:
            start = text.find(self.start_tag, cursor)
            if start < 0:
                break

            end = text.find(self.end_tag, start)
            if end < 0:
                self.logger.warning(
                    "List response truncated, unterminated key marker",
                    position=start,
                    keys_found=len(keys)
                )
                break

            keys.append(text[start + len(self.start_tag):end])
            cursor = end + len(self.end_tag)

        return keys
