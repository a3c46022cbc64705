"""
Debit/credit direction detection.

Rules are evaluated in order and the first one that returns a result wins.
Each rule is a pure function over DirectionInput so it can be tested alone.
"""

from collections.abc import Callable
from dataclasses import dataclass

from fintrack.features.gmail_import.domain import Direction
from fintrack.features.gmail_import.parsing import patterns


@dataclass(frozen=True, slots=True)
class DirectionInput:
    subject: str
    body: str


@dataclass(frozen=True, slots=True)
class DirectionResult:
    direction: Direction
    confidence: float
    rule: str


DirectionRule = Callable[[DirectionInput], DirectionResult | None]


def subject_rule(ctx: DirectionInput) -> DirectionResult | None:
    if patterns.SUBJECT_DEBIT_PATTERN.search(ctx.subject):
        return DirectionResult("debit", 0.9, "subject")
    if patterns.SUBJECT_CREDIT_PATTERN.search(ctx.subject):
        return DirectionResult("credit", 0.9, "subject")
    return None


def subscription_rule(ctx: DirectionInput) -> DirectionResult | None:
    if patterns.SUBSCRIPTION_PATTERN.search(ctx.body):
        return DirectionResult("debit", 0.85, "subscription")
    return None


def wallet_rule(ctx: DirectionInput) -> DirectionResult | None:
    if not patterns.WALLET_PATTERN.search(ctx.body):
        return None
    if patterns.WALLET_CREDIT_PATTERN.search(ctx.body):
        return DirectionResult("credit", 0.8, "wallet")
    return DirectionResult("debit", 0.8, "wallet")


def keyword_score_rule(ctx: DirectionInput) -> DirectionResult | None:
    """Credit keywords weigh 2, debit keywords 1, a refund phrase adds 5 to credit."""
    credit_score = 2 * len(patterns.CREDIT_KEYWORD_PATTERN.findall(ctx.body))
    debit_score = len(patterns.DEBIT_KEYWORD_PATTERN.findall(ctx.body))
    if patterns.REFUND_PHRASE_PATTERN.search(ctx.body):
        credit_score += 5

    net = credit_score - debit_score
    if net > 0:
        return DirectionResult("credit", min(credit_score / 5, 1.0), "keyword_score")
    if net < 0:
        return DirectionResult("debit", min(debit_score / 5, 1.0), "keyword_score")
    return None


def loose_fallback_rule(ctx: DirectionInput) -> DirectionResult | None:
    if patterns.LOOSE_CREDIT_PATTERN.search(ctx.body):
        return DirectionResult("credit", 0.5, "loose_fallback")
    if patterns.LOOSE_DEBIT_PATTERN.search(ctx.body):
        return DirectionResult("debit", 0.5, "loose_fallback")
    return None


DIRECTION_RULES: tuple[DirectionRule, ...] = (
    subject_rule,
    subscription_rule,
    wallet_rule,
    keyword_score_rule,
    loose_fallback_rule,
)


def determine_direction(
    subject: str, body: str, rules: tuple[DirectionRule, ...] = DIRECTION_RULES
) -> DirectionResult | None:
    ctx = DirectionInput(subject=subject or "", body=body or "")
    for rule in rules:
        result = rule(ctx)
        if result is not None:
            return result
    return None
