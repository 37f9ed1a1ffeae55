"""Tests for money and order number value objects."""

from decimal import Decimal

import pytest

from fulfillment.domain.entities.transaction import Transaction, mask_identifier
from fulfillment.domain.enums import PaymentMethod, TransactionStatus
from fulfillment.domain.value_objects import Money, OrderNumber, quantize_amount


def test_money_rejects_mixed_currencies():
    with pytest.raises(ValueError):
        Money(Decimal("1.00"), "USD") + Money(Decimal("1.00"), "EUR")


def test_quantize_amount_rounds_half_up():
    assert quantize_amount(Decimal("2.345")) == Decimal("2.35")
    assert quantize_amount(Decimal("2.344")) == Decimal("2.34")


def test_order_number_format():
    number = OrderNumber.generate()
    assert OrderNumber(number.value) == number

    with pytest.raises(ValueError):
        OrderNumber("ORD-123")


def test_gateway_identifiers_are_masked():
    assert mask_identifier("pi_3NqLz2Kx") == "pi_3****"
    assert mask_identifier(None) is None

    transaction = Transaction(
        order_number="ORD-1700000000000-123456",
        payment_method=PaymentMethod.CARD,
        amount=Money(Decimal("40.00"), "USD"),
        gateway_transaction_id="fake_abcdef",
        receipt_url="https://receipts.test/r/1",
    )
    assert transaction.masked_gateway_transaction_id == "fake****"
    assert transaction.masked_receipt_url == "http****"


def test_transaction_transition_table():
    assert Transaction.sources_for(TransactionStatus.COMPLETED) == {
        TransactionStatus.PENDING,
        TransactionStatus.FAILED,
    }
    assert Transaction.sources_for(TransactionStatus.REFUNDED) == {TransactionStatus.COMPLETED}
    assert Transaction.sources_for(TransactionStatus.PENDING) == set()
