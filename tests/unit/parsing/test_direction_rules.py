import pytest

from fintrack.features.gmail_import.parsing.direction import (
    DirectionInput,
    DirectionResult,
    determine_direction,
    keyword_score_rule,
    loose_fallback_rule,
    subject_rule,
    wallet_rule,
)


def test_subject_rule_wins_over_body_keywords():
    result = determine_direction("Amount debited", "refund credited cashback received")
    assert result == DirectionResult("debit", 0.9, "subject")


def test_subject_credit():
    assert subject_rule(DirectionInput("Refund processed", "")) == DirectionResult(
        "credit", 0.9, "subject"
    )


def test_subscription_renewal_is_debit():
    result = determine_direction("", "Your Netflix subscription renewal was successful")
    assert result.direction == "debit"
    assert result.confidence == 0.85
    assert result.rule == "subscription"


@pytest.mark.parametrize(
    "body, direction",
    [
        ("Rs.200 added to your Paytm wallet", "credit"),
        ("Rs.50 paid from your wallet balance", "debit"),
    ],
)
def test_wallet_rule(body, direction):
    result = wallet_rule(DirectionInput("", body))
    assert result.direction == direction
    assert result.confidence == 0.8


def test_keyword_score_credit_confidence():
    result = keyword_score_rule(DirectionInput("", "Rs.500 credited. Amount received"))
    assert result.direction == "credit"
    assert result.confidence == pytest.approx(0.8)


def test_refund_phrase_bonus_caps_confidence():
    result = keyword_score_rule(DirectionInput("", "Refund of Rs.300 has been processed"))
    assert result.direction == "credit"
    assert result.confidence == 1.0


def test_keyword_score_debit():
    result = keyword_score_rule(DirectionInput("", "Rs.75 spent on card"))
    assert result.direction == "debit"
    assert result.confidence == pytest.approx(0.2)


def test_net_zero_falls_through_to_loose_rule():
    body = "Rs.10 credited to your card after you paid and sent"
    assert keyword_score_rule(DirectionInput("", body)) is None
    assert determine_direction("", body) == DirectionResult("credit", 0.5, "loose_fallback")


def test_loose_debit():
    assert loose_fallback_rule(DirectionInput("", "debited from savings")) == DirectionResult(
        "debit", 0.5, "loose_fallback"
    )


def test_no_rule_matches():
    assert determine_direction("Monthly statement", "Your statement is ready") is None


def test_custom_rule_order():
    always_credit = lambda ctx: DirectionResult("credit", 1.0, "custom")  # noqa: E731
    result = determine_direction("Amount debited", "", rules=(always_credit, subject_rule))
    assert result.rule == "custom"
