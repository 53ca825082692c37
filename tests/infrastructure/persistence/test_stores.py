from datetime import datetime, timedelta, timezone

import pytest

from lingoflow.domain.models import (
    Account,
    Card,
    ExtractionCandidate,
    Membership,
    SourceType,
    Tier,
    WeeklyUsage,
    update,
)
from lingoflow.domain.query import Order, eq, ge, is_null, le, not_null
from lingoflow.infrastructure.persistence import InMemoryStore, SqliteStore

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    if request.param == "memory":
        yield InMemoryStore()
    else:
        with SqliteStore(tmp_path / "store.db") as store:
            yield store


def _card(card_id, due=None, created=T0, owner="a"):
    return Card(
        id=card_id,
        owner_id=owner,
        term=card_id,
        gloss="g",
        example="e",
        cefr="B2",
        created_at=created,
        next_due_at=due,
    )


def test_get_missing_returns_none(any_store):
    assert any_store.get(Account, "nobody") is None


def test_save_and_get_round_trip(any_store):
    card = Card(
        id="c1",
        owner_id="a",
        term="muchas gracias",
        gloss="thank you very much",
        example="¡Muchas gracias!",
        cefr="C1",
        tags=("subtitle", "es", "phrase"),
        source_type=SourceType.SUBTITLE,
        created_at=T0,
        strength=2,
        ease=2.7,
        next_due_at=T0 + timedelta(days=6),
    )
    any_store.save(card)
    assert any_store.get(Card, "c1") == card


def test_save_is_upsert(any_store):
    account = Account(id="a")
    any_store.save(account)
    any_store.save(update(account, tier=Tier.ACTIVE))

    assert any_store.get(Account, "a").tier == Tier.ACTIVE
    assert len(any_store.query(Account)) == 1


def test_query_without_order_keeps_insertion_order(any_store):
    for card_id in ("z", "a", "m"):
        any_store.save(_card(card_id))
    # Re-saving does not move an entity
    any_store.save(update(_card("z"), gloss="changed"))

    assert [c.id for c in any_store.query(Card)] == ["z", "a", "m"]


def test_filters(any_store):
    any_store.save(_card("past", due=T0 - timedelta(days=1)))
    any_store.save(_card("now", due=T0))
    any_store.save(_card("future", due=T0 + timedelta(days=1)))
    any_store.save(_card("new"))
    any_store.save(_card("other", due=T0, owner="b"))

    def ids(*where):
        return sorted(c.id for c in any_store.query(Card, where=list(where)))

    assert ids(eq("owner_id", "a"), le("next_due_at", T0)) == ["now", "past"]
    assert ids(eq("owner_id", "a"), ge("next_due_at", T0)) == ["future", "now"]
    assert ids(is_null("next_due_at")) == ["new"]
    assert ids(not_null("next_due_at"), eq("owner_id", "b")) == ["other"]


def test_filter_on_boolean_field(any_store):
    any_store.save(Account(id="on"))
    any_store.save(Account(id="off", auto_reactivate=False))

    assert [a.id for a in any_store.query(Account, where=[eq("auto_reactivate", False)])] == ["off"]


def test_datetime_filters_compare_across_offsets(any_store):
    any_store.save(_card("c", due=T0))
    plus_two = timezone(timedelta(hours=2))

    # 01:00+02:00 is 23:00 UTC the previous day, before T0
    assert any_store.query(Card, where=[le("next_due_at", datetime(2024, 1, 1, 1, tzinfo=plus_two))]) == []


def test_ordering_puts_nulls_first_ascending(any_store):
    any_store.save(_card("b", due=T0 + timedelta(days=2)))
    any_store.save(_card("null"))
    any_store.save(_card("a", due=T0 + timedelta(days=1)))

    asc = any_store.query(Card, order_by=[Order("next_due_at")])
    desc = any_store.query(Card, order_by=[Order("next_due_at", descending=True)])

    assert [c.id for c in asc] == ["null", "a", "b"]
    assert [c.id for c in desc] == ["b", "a", "null"]


def test_multi_key_ordering(any_store):
    any_store.save(_card("x2", created=T0 + timedelta(hours=2), owner="x"))
    any_store.save(_card("y1", created=T0 + timedelta(hours=1), owner="y"))
    any_store.save(_card("x1", created=T0 + timedelta(hours=1), owner="x"))

    result = any_store.query(Card, order_by=[Order("owner_id"), Order("created_at", descending=True)])

    assert [c.id for c in result] == ["x2", "x1", "y1"]


def test_entities_with_derived_ids(any_store):
    any_store.save(Membership(org_id="o", account_id="a"))
    any_store.save(WeeklyUsage(account_id="a", week_start=T0, org_id="o", transcripts=2))

    assert any_store.get(Membership, "o:a").account_id == "a"
    assert any_store.get(WeeklyUsage, "o:a:2024-01-01").transcripts == 2


def test_non_entities_are_rejected(any_store):
    candidate = ExtractionCandidate(term="hola", frequency=2, novelty=1.0, is_starred=False)

    with pytest.raises(TypeError):
        any_store.save(candidate)
    assert any_store.query(ExtractionCandidate) == []


def test_unknown_field_is_rejected_by_sqlite(tmp_path):
    with SqliteStore(tmp_path / "s.db") as store:
        with pytest.raises(ValueError):
            store.query(Card, where=[eq("owner_id; DROP TABLE entities", "a")])


def test_sqlite_refuses_naive_datetimes(tmp_path):
    with SqliteStore(tmp_path / "s.db") as store:
        with pytest.raises(ValueError):
            store.save(_card("naive", created=datetime(2024, 1, 1)))


def test_sqlite_persists_across_connections(tmp_path):
    path = tmp_path / "nested" / "lf.db"
    with SqliteStore(path) as store:
        store.save(Account(id="a", tier=Tier.TEAM, last_usage_at=T0))

    with SqliteStore(path) as store:
        account = store.get(Account, "a")

    assert account.tier == Tier.TEAM
    assert account.last_usage_at == T0
