from .billing import HttpBillingClient, StubBillingClient
from .dictionary import JsonFileDictionary, StaticDictionary
from .image_gen import HttpImageGenerator, PlaceholderImageGenerator
from .llm import EchoLanguageModel, OpenAILanguageModel
from .text_analysis import SimpleTextAnalyzer, SpacyTextAnalyzer

__all__ = [
    "EchoLanguageModel",
    "HttpBillingClient",
    "HttpImageGenerator",
    "JsonFileDictionary",
    "OpenAILanguageModel",
    "PlaceholderImageGenerator",
    "SimpleTextAnalyzer",
    "SpacyTextAnalyzer",
    "StaticDictionary",
    "StubBillingClient",
]
