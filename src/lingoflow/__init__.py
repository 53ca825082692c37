"""lingoflow: usage-driven flashcard pipeline."""

from lingoflow.consts import VERSION

__version__ = VERSION
