from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from app.core.errors import StoreUnavailable
from app.schemas.correlation import Correlation, CorrelationMethod
from app.services.store.correlation_store_service import SqlCorrelationStore

from factories import at


def corr(identity="u@x.com", address="10.0.0.1", confidence=0.5, sources=("aws_waf",),
         method=CorrelationMethod.DIRECT, first=0, last=0):
    return Correlation(
        identity=identity,
        address=address,
        first_observed=at(first),
        last_observed=at(last),
        confidence=confidence,
        evidence_sources=frozenset(sources),
        method=method,
    )


def test_write_then_read_back_as_historical(store):
    store.write(corr(confidence=0.9, first=1, last=2))

    (stored,) = store.read_candidates(["u@x.com"], [])

    assert stored.key == ("u@x.com", "10.0.0.1")
    assert stored.confidence == 0.9
    assert stored.method is CorrelationMethod.HISTORICAL
    assert stored.first_observed == at(1)
    assert stored.last_observed == at(2)
    assert stored.evidence_sources == {"aws_waf"}


def test_upsert_keeps_max_confidence_latest_last_seen_and_union(store):
    store.write(corr(confidence=0.9, sources=["aws_waf"], first=0, last=10))
    store.write(corr(confidence=0.6, sources=["deep_security"], first=-5, last=3))

    (stored,) = store.read_candidates([], ["10.0.0.1"])

    assert stored.confidence == 0.9
    assert stored.last_observed == at(10)
    assert stored.first_observed == at(-5)
    assert stored.evidence_sources == {"aws_waf", "deep_security"}


def test_upsert_never_shrinks_sources(store):
    store.write(corr(sources=["aws_waf", "akamai_waf"]))
    store.write(corr(sources=[]))

    (stored,) = store.read_candidates(["u@x.com"], [])
    assert stored.evidence_sources == {"aws_waf", "akamai_waf"}


def test_read_candidates_is_inclusive_or(store):
    store.write_many(
        [
            corr(identity="a@x.com", address="10.0.0.1"),
            corr(identity="b@x.com", address="10.0.0.2"),
            corr(identity="c@x.com", address="10.0.0.3"),
        ]
    )

    found = store.read_candidates(["a@x.com"], ["10.0.0.2"])

    assert [c.key for c in found] == [("a@x.com", "10.0.0.1"), ("b@x.com", "10.0.0.2")]


def test_sources_are_scoped_to_their_own_key(store):
    store.write(corr(identity="a@x.com", address="10.0.0.1", sources=["aws_waf"]))
    store.write(corr(identity="b@x.com", address="10.0.0.2", sources=["azure_waf"]))
    store.write(corr(identity="a@x.com", address="10.0.0.2", sources=["akamai_waf"]))

    found = {c.key: c.evidence_sources for c in store.read_candidates(["a@x.com", "b@x.com"], [])}

    assert found[("a@x.com", "10.0.0.1")] == {"aws_waf"}
    assert found[("b@x.com", "10.0.0.2")] == {"azure_waf"}
    assert found[("a@x.com", "10.0.0.2")] == {"akamai_waf"}


def test_read_with_nothing_to_look_up_returns_empty(store):
    store.write(corr())
    assert store.read_candidates([], []) == []


def test_database_errors_surface_as_store_unavailable():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "sqlite"
    session.execute.side_effect = OperationalError("INSERT", {}, Exception("db down"))
    store = SqlCorrelationStore(lambda: session)

    with pytest.raises(StoreUnavailable):
        store.write(corr())
    session.rollback.assert_called_once()

    with pytest.raises(StoreUnavailable):
        store.read_candidates(["u@x.com"], [])
