"""
Service Factory
Centralizes the selection of adapters for each port and wires the engines.
"""

import logging
from dataclasses import dataclass

from lingoflow.application.analytics import AnalyticsService
from lingoflow.application.config import AppConfig
from lingoflow.application.extraction import CardEnricher, CardGenerationService
from lingoflow.application.recording import UsageRecorder
from lingoflow.application.review import ReviewScheduler
from lingoflow.application.subscription import SubscriptionStateMachine
from lingoflow.domain.ports import (
    BillingClient,
    Dictionary,
    ImageGenerator,
    LanguageModel,
    Store,
    TextAnalyzer,
)
from lingoflow.infrastructure.adapters import (
    EchoLanguageModel,
    HttpBillingClient,
    HttpImageGenerator,
    JsonFileDictionary,
    OpenAILanguageModel,
    PlaceholderImageGenerator,
    SimpleTextAnalyzer,
    SpacyTextAnalyzer,
    StaticDictionary,
    StubBillingClient,
)
from lingoflow.infrastructure.persistence import InMemoryStore, SqliteStore

logger = logging.getLogger(__name__)


def get_store(config: AppConfig) -> Store:
    if config.store == "memory":
        return InMemoryStore()
    return SqliteStore(config.db_path)


def get_text_analyzer(config: AppConfig) -> TextAnalyzer:
    if config.nlp == "spacy":
        language = config.default_language or "es"
        return SpacyTextAnalyzer(models={language: config.spacy_model}, fallback_language=language)
    return SimpleTextAnalyzer(default_language=config.default_language)


def get_dictionary(config: AppConfig) -> Dictionary:
    if config.dictionary_path:
        return JsonFileDictionary(config.dictionary_path)
    return StaticDictionary()


def get_language_model(config: AppConfig) -> LanguageModel:
    if config.llm == "openai":
        if not config.openai_api_key:
            logger.warning("llm=openai but no API key configured; using the echo model")
            return EchoLanguageModel()
        return OpenAILanguageModel(api_key=config.openai_api_key, model=config.llm_model)
    return EchoLanguageModel()


def get_image_generator(config: AppConfig) -> ImageGenerator:
    if config.image_backend == "http":
        return HttpImageGenerator(url=config.image_gen_url)
    return PlaceholderImageGenerator()


def get_billing_client(config: AppConfig) -> BillingClient:
    if config.billing == "http":
        return HttpBillingClient(base_url=config.billing_url, api_key=config.billing_api_key)
    return StubBillingClient()


@dataclass
class Services:
    """Everything an orchestrator (CLI, server) needs, wired to one store."""

    config: AppConfig
    store: Store
    billing: BillingClient
    state_machine: SubscriptionStateMachine
    recorder: UsageRecorder
    scheduler: ReviewScheduler
    generator: CardGenerationService
    analytics: AnalyticsService
    llm: LanguageModel
    images: ImageGenerator

    async def aclose(self) -> None:
        """Close the network clients held by the adapters."""
        for client in (self.billing, self.llm, self.images):
            try:
                await client.close()
            except Exception as e:
                logger.warning(f"Failed to close {type(client).__name__}: {e}")

    def close(self) -> None:
        self.store.close()


def build_services(config: AppConfig, store: Store | None = None) -> Services:
    """
    Wire the engines for `config`.

    Args:
        config: Resolved application configuration.
        store: Optional pre-built store (tests pass an InMemoryStore).
    """
    store = store if store is not None else get_store(config)
    billing = get_billing_client(config)
    analyzer = get_text_analyzer(config)

    state_machine = SubscriptionStateMachine(store, billing)
    recorder = UsageRecorder(store, state_machine)
    llm = get_language_model(config)
    images = get_image_generator(config)
    enricher = CardEnricher(
        analyzer=analyzer,
        dictionary=get_dictionary(config),
        llm=llm,
        images=images,
    )
    logger.debug(
        f"Services built: store={type(store).__name__} billing={type(billing).__name__} "
        f"nlp={type(analyzer).__name__}"
    )
    return Services(
        config=config,
        store=store,
        billing=billing,
        state_machine=state_machine,
        recorder=recorder,
        scheduler=ReviewScheduler(store, recorder),
        generator=CardGenerationService(
            store,
            analyzer,
            enricher,
            recorder,
            parallel_enrichment=config.parallel_enrichment,
        ),
        analytics=AnalyticsService(store),
        llm=llm,
        images=images,
    )
