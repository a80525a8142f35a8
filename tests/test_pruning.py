from app.config import INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED
from app.models.schemas import DeliveryOutcome, Subscription
from app.services.pruning import dead_tokens, failure_summary, select_for_pruning

DEAD_CODES = [INVALID_REGISTRATION_TOKEN, REGISTRATION_TOKEN_NOT_REGISTERED]


def outcomes():
    return [
        DeliveryOutcome(token="A", success=True),
        DeliveryOutcome(token="B", success=False, error_code=INVALID_REGISTRATION_TOKEN),
        DeliveryOutcome(token="C", success=False, error_code="messaging/message-rate-exceeded"),
        DeliveryOutcome(token="D", success=False, error_code=REGISTRATION_TOKEN_NOT_REGISTERED),
        DeliveryOutcome(token="E", success=False),
    ]


def test_only_dead_codes_are_selected():
    assert dead_tokens(outcomes(), DEAD_CODES) == {"B", "D"}


def test_no_dead_codes_configured_prunes_nothing():
    assert dead_tokens(outcomes(), []) == set()


def test_select_for_pruning_matches_every_holder():
    subscriptions = [
        Subscription(id="1", token="B"),
        Subscription(id="2", token="A"),
        Subscription(id="3", token="B"),
    ]
    assert [s.id for s in select_for_pruning(subscriptions, {"B"})] == ["1", "3"]
    assert select_for_pruning(subscriptions, set()) == []


def test_failure_summary():
    assert failure_summary(outcomes()) == {
        INVALID_REGISTRATION_TOKEN: 1,
        "messaging/message-rate-exceeded": 1,
        REGISTRATION_TOKEN_NOT_REGISTERED: 1,
        "unknown": 1,
    }
