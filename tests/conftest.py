from datetime import datetime, timezone

import pytest

from lingoflow.application.recording import UsageRecorder
from lingoflow.application.subscription import SubscriptionStateMachine
from lingoflow.domain.models import Account
from lingoflow.infrastructure.adapters import (
    EchoLanguageModel,
    PlaceholderImageGenerator,
    SimpleTextAnalyzer,
    StaticDictionary,
    StubBillingClient,
)
from lingoflow.infrastructure.persistence import InMemoryStore


@pytest.fixture
def now():
    """A fixed, timezone-aware 'current time' for deterministic tests."""
    return datetime(2024, 3, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def billing():
    return StubBillingClient()


@pytest.fixture
def state_machine(store, billing):
    return SubscriptionStateMachine(store, billing)


@pytest.fixture
def recorder(store, state_machine):
    return UsageRecorder(store, state_machine)


@pytest.fixture
def analyzer():
    return SimpleTextAnalyzer()


@pytest.fixture
def dictionary():
    return StaticDictionary()


@pytest.fixture
def llm():
    return EchoLanguageModel()


@pytest.fixture
def images():
    return PlaceholderImageGenerator()


@pytest.fixture
def account(store):
    """Default learner: storage tier, auto-reactivate on, goal 20, learning Spanish."""
    acct = Account(id="acct_1", email="learner@example.com", target_language="es")
    store.save(acct)
    return acct


@pytest.fixture
def mock_home(tmp_path, monkeypatch):
    """Mocks Path.home() to point to a temp dir."""
    home = tmp_path / "home"
    home.mkdir()

    # Mocking HOME to a temp directory to isolate config/logs
    monkeypatch.setenv("HOME", str(home))
    return home
