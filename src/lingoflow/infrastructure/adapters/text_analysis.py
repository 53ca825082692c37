"""TextAnalyzer adapters: a regex tokenizer and a spaCy-backed analyzer."""

import logging
import re
from typing import Any

from lingoflow.domain.ports import TextAnalyzer

_TOKEN = re.compile(r"[^\W_]+(?:['’-][^\W_]+)*")

DEFAULT_SPACY_MODELS = {
    "es": "es_core_news_sm",
    "fr": "fr_core_news_sm",
    "de": "de_core_news_sm",
    "en": "en_core_web_sm",
}


class SimpleTextAnalyzer(TextAnalyzer):
    """
    Dependency-free analyzer: regex tokens, identity lemmas, no tagging.

    Language detection is not attempted; the configured default is returned.
    """

    def __init__(self, default_language: str | None = None):
        self.default_language = default_language

    def detect_language(self, text: str) -> str | None:
        return self.default_language

    def tokenize(self, text: str, language: str | None = None) -> list[str]:
        return _TOKEN.findall(text)

    def lemmatize(self, tokens: list[str], language: str | None = None) -> list[str]:
        return [t.lower() for t in tokens]

    def part_of_speech(self, token: str, language: str | None = None) -> str | None:
        return None


class SpacyTextAnalyzer(TextAnalyzer):
    """
    spaCy pipelines per language, with langid for language detection.

    Pipelines are loaded on first use. Requires the `nlp` extra and the
    relevant spaCy model packages.
    """

    def __init__(self, models: dict[str, str] | None = None, fallback_language: str = "es"):
        import langid
        import spacy

        self.logger = logging.getLogger(__name__)
        self._spacy = spacy
        self._langid = langid
        self._models = {**DEFAULT_SPACY_MODELS, **(models or {})}
        self._fallback_language = fallback_language
        self._pipelines: dict[str, Any] = {}

    def _pipeline(self, language: str | None) -> Any:
        lang = language if language in self._models else self._fallback_language
        if lang not in self._pipelines:
            self.logger.info(f"Loading spaCy model {self._models[lang]} for '{lang}'")
            self._pipelines[lang] = self._spacy.load(self._models[lang])
        return self._pipelines[lang]

    def detect_language(self, text: str) -> str | None:
        if not text.strip():
            return None
        lang, _score = self._langid.classify(text)
        return lang

    def tokenize(self, text: str, language: str | None = None) -> list[str]:
        doc = self._pipeline(language)(text)
        return [t.text for t in doc if not t.is_space and not t.is_punct]

    def lemmatize(self, tokens: list[str], language: str | None = None) -> list[str]:
        if not tokens:
            return []
        doc = self._pipeline(language)(" ".join(tokens))
        if len(doc) == len(tokens):
            return [(t.lemma_ or t.text).lower() for t in doc]
        # Re-tokenized differently; lemmatize token by token to keep alignment
        nlp = self._pipeline(language)
        lemmas = []
        for token in tokens:
            sub = nlp(token)
            lemmas.append((sub[0].lemma_ if len(sub) else token).lower())
        return lemmas

    def part_of_speech(self, token: str, language: str | None = None) -> str | None:
        doc = self._pipeline(language)(token)
        if not len(doc):
            return None
        pos = doc[0].pos_
        return pos.lower() if pos else None
