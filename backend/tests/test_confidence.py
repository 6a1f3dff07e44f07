import pytest

from app.services.correlation.confidence import score, score_direct, score_time_proximity

from factories import make_record


def test_direct_score_is_fixed():
    assert score_direct() == 0.9
    assert score(make_record(0, identities=["a@b.com"], addresses=["10.0.0.1"])) == 0.9


@pytest.mark.parametrize(
    "gap_minutes, expected",
    [
        (0, 0.8),
        (1, 0.8),
        (2, 0.7),
        (5, 0.7),
        (10, 0.6),
        (15, 0.6),
        (16, 0.5),
    ],
)
def test_time_gap_bonus(gap_minutes, expected):
    a = make_record(0, identities=["u@x.com"])
    b = make_record(gap_minutes, addresses=["10.0.0.1"])
    assert score_time_proximity(a, b) == pytest.approx(expected)


def test_gap_is_symmetric():
    a = make_record(3, identities=["u@x.com"])
    b = make_record(0, addresses=["10.0.0.1"])
    assert score_time_proximity(a, b) == pytest.approx(0.7)


def test_zero_gap_with_context_bonuses_is_clamped():
    a = make_record(0, identities=["u@x.com"], company_code="ACME", host="web-01")
    b = make_record(0, addresses=["10.0.0.1"], company_code="ACME", host="web-01")
    assert score(a, b) == 1.0


def test_company_bonus_only():
    a = make_record(0, identities=["u@x.com"], company_code="ACME", host="web-01")
    b = make_record(0, addresses=["10.0.0.1"], company_code="ACME", host="web-02")
    assert score(a, b) == pytest.approx(1.0)

    a = make_record(10, identities=["u@x.com"], company_code="ACME")
    b = make_record(0, addresses=["10.0.0.1"], company_code="ACME")
    assert score(a, b) == pytest.approx(0.8)


def test_empty_context_values_never_match():
    a = make_record(10, identities=["u@x.com"], company_code="", host="")
    b = make_record(0, addresses=["10.0.0.1"], company_code="", host="")
    assert score(a, b) == pytest.approx(0.6)


def test_host_bonus_only():
    a = make_record(10, identities=["u@x.com"], host="web-01")
    b = make_record(0, addresses=["10.0.0.1"], host="web-01")
    assert score(a, b) == pytest.approx(0.7)
