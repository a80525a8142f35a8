"""
Outcome classification and pruning selection.

Only codes that mean "this token will never work again" mark a token dead.
Anything else, including unknown codes, keeps the registration.
"""

from collections import Counter
from typing import Dict, Iterable, List, Set
from app.models.schemas import DeliveryOutcome, Subscription


def dead_tokens(outcomes: Iterable[DeliveryOutcome], dead_codes: Iterable[str]) -> Set[str]:
    """Tokens whose failure code is in ``dead_codes``"""
    codes = frozenset(dead_codes)
    return {
        outcome.token
        for outcome in outcomes
        if not outcome.success and outcome.error_code in codes
    }


def select_for_pruning(subscriptions: Iterable[Subscription], tokens: Set[str]) -> List[Subscription]:
    """Every subscription holding a dead token, duplicates included"""
    if not tokens:
        return []
    return [subscription for subscription in subscriptions if subscription.token in tokens]


def failure_summary(outcomes: Iterable[DeliveryOutcome]) -> Dict[str, int]:
    """Count failures by error code"""
    return dict(Counter(
        outcome.error_code or "unknown"
        for outcome in outcomes
        if not outcome.success
    ))
