from typing import List, Optional, Protocol, Tuple


class LanguageDetector(Protocol):
    def detect(self, text: str) -> List[str]:
        """Language codes of non-English scripts found in ``text``"""


class Transliterator(Protocol):
    def transliterate(self, text: str) -> str:
        """Latin-script equivalent of a vernacular term"""


# (first code point, last code point, language code)
SCRIPT_RANGES: List[Tuple[int, int, str]] = [
    (0x0900, 0x097F, "hi"),
    (0x0980, 0x09FF, "bn"),
    (0x0A00, 0x0A7F, "pa"),
    (0x0A80, 0x0AFF, "gu"),
    (0x0B00, 0x0B7F, "or"),
    (0x0B80, 0x0BFF, "ta"),
    (0x0C00, 0x0C7F, "te"),
    (0x0C80, 0x0CFF, "kn"),
    (0x0D00, 0x0D7F, "ml"),
    (0x0600, 0x06FF, "ur"),
]


class ScriptLanguageDetector:
    """Detects vernacular languages from the Unicode blocks used by the text"""

    def __init__(self, script_ranges: Optional[List[Tuple[int, int, str]]] = None):
        self.script_ranges = script_ranges or SCRIPT_RANGES

    def _language_of(self, char: str) -> Optional[str]:
        code_point = ord(char)
        for start, end, language in self.script_ranges:
            if start <= code_point <= end:
                return language
        return None

    def detect(self, text: str) -> List[str]:
        languages = []
        for char in text or "":
            language = self._language_of(char)
            if language and language not in languages:
                languages.append(language)
        return languages


def is_vernacular(languages: List[str]) -> bool:
    """True unless nothing or only English was detected"""
    return bool(languages) and languages != ["en"]
