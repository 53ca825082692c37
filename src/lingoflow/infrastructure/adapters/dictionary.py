"""Dictionary adapters: a seeded in-process glossary and a JSON file glossary."""

import json
import logging
from pathlib import Path

from lingoflow.domain.ports import Dictionary

SEED_ENTRIES = {
    "hola": "hello",
    "gracias": "thank you",
    "bonjour": "hello",
    "merci": "thank you",
    "agua": "water",
}


class StaticDictionary(Dictionary):
    """Case-insensitive lookup over a fixed term -> gloss mapping."""

    def __init__(self, entries: dict[str, str] | None = None):
        source = SEED_ENTRIES if entries is None else entries
        self._entries = {term.lower(): gloss for term, gloss in source.items()}

    def lookup(self, term: str, language: str | None = None) -> str | None:
        return self._entries.get(term.lower())

    def __len__(self) -> int:
        return len(self._entries)


class JsonFileDictionary(StaticDictionary):
    """
    Glossary loaded from a JSON file.

    Accepts either a list of {"term": ..., "gloss": ...} objects or a plain
    {"term": "gloss"} mapping. Falls back to the seed entries when the file
    is missing, unreadable or holds anything else.
    """

    def __init__(self, path: Path):
        self.logger = logging.getLogger(__name__)
        self.path = path
        super().__init__(self._load(path))

    def _load(self, path: Path) -> dict[str, str] | None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not load dictionary {path}: {e}; using seed entries")
            return None

        if isinstance(data, dict):
            return {str(k): str(v) for k, v in data.items()}
        if not isinstance(data, list):
            self.logger.warning(
                f"Dictionary {path} holds a {type(data).__name__}, not a list or mapping; "
                "using seed entries"
            )
            return None
        entries = {}
        for item in data:
            if isinstance(item, dict) and item.get("term") and item.get("gloss"):
                entries[str(item["term"])] = str(item["gloss"])
        self.logger.debug(f"Loaded {len(entries)} dictionary entries from {path}")
        return entries
