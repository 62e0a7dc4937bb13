"""Unit tests for the transition tables, the transition guard and money helpers."""

from decimal import Decimal

import pytest
from libs.common.currency import paise_to_rupees, percentage_of, rupees_to_paise
from libs.common.errors import InvalidStatusTransition
from libs.common.status import can_transition, ensure_transition
from services.payments_service.models import PAYMENT_TRANSITIONS, PaymentStatus
from services.store_service.models import (
    CHECKOUT_TRANSITIONS,
    ORDER_TRANSITIONS,
    RETURN_TRANSITIONS,
    CheckoutStatus,
    OrderStatus,
    ReturnStatus,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "transitions, enum_cls",
    [
        (CHECKOUT_TRANSITIONS, CheckoutStatus),
        (ORDER_TRANSITIONS, OrderStatus),
        (RETURN_TRANSITIONS, ReturnStatus),
        (PAYMENT_TRANSITIONS, PaymentStatus),
    ],
)
def test_every_status_has_a_transition_entry(transitions, enum_cls):
    assert set(transitions) == set(enum_cls)
    for targets in transitions.values():
        assert targets <= set(enum_cls)


@pytest.mark.unit
def test_terminal_states_have_no_exits():
    assert CHECKOUT_TRANSITIONS[CheckoutStatus.COMPLETED] == frozenset()
    assert CHECKOUT_TRANSITIONS[CheckoutStatus.DELETED] == frozenset()
    assert ORDER_TRANSITIONS[OrderStatus.CANCELLED] == frozenset()
    assert ORDER_TRANSITIONS[OrderStatus.REFUNDED] == frozenset()
    assert PAYMENT_TRANSITIONS[PaymentStatus.REFUNDED] == frozenset()


@pytest.mark.unit
def test_nothing_returns_to_pending():
    for targets in CHECKOUT_TRANSITIONS.values():
        assert CheckoutStatus.PENDING not in targets
    for targets in ORDER_TRANSITIONS.values():
        assert OrderStatus.PENDING_PAYMENT not in targets


@pytest.mark.unit
def test_refunded_only_reachable_from_paid():
    sources = {
        source
        for source, targets in PAYMENT_TRANSITIONS.items()
        if PaymentStatus.REFUNDED in targets
    }
    assert sources == {PaymentStatus.PAID}


@pytest.mark.unit
def test_failed_intent_can_only_be_captured_late():
    assert PAYMENT_TRANSITIONS[PaymentStatus.FAILED] == frozenset({PaymentStatus.PAID})


@pytest.mark.unit
def test_ensure_transition():
    assert (
        ensure_transition(
            "payment", PAYMENT_TRANSITIONS, PaymentStatus.CREATED, PaymentStatus.PAID
        )
        == PaymentStatus.PAID
    )
    assert not can_transition(
        PAYMENT_TRANSITIONS, PaymentStatus.REFUNDED, PaymentStatus.PAID
    )

    with pytest.raises(InvalidStatusTransition) as exc_info:
        ensure_transition(
            "payment", PAYMENT_TRANSITIONS, PaymentStatus.REFUNDED, PaymentStatus.PAID
        )
    assert exc_info.value.entity == "payment"
    assert exc_info.value.current == "refunded"
    assert exc_info.value.target == "paid"
    assert exc_info.value.status_code == 409


# ---------------------------------------------------------------------------
# Money
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "rupees, paise",
    [
        (Decimal("1000.00"), 100000),
        (Decimal("0.01"), 1),
        (Decimal("499.995"), 50000),
        (Decimal("0"), 0),
    ],
)
def test_rupees_to_paise(rupees, paise):
    assert rupees_to_paise(rupees) == paise


@pytest.mark.unit
def test_paise_to_rupees():
    assert paise_to_rupees(12345) == Decimal("123.45")


@pytest.mark.unit
def test_percentage_rounds_half_up():
    assert percentage_of(Decimal("0.25"), Decimal("10")) == Decimal("0.03")
    assert percentage_of(Decimal("999.99"), Decimal("12.5")) == Decimal("125.00")
