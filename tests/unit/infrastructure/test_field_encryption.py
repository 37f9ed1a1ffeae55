"""Tests for at-rest encryption of gateway identifiers."""

from decimal import Decimal

import pytest
from cryptography.fernet import InvalidToken
from sqlalchemy import text

from fulfillment.data.uow import create_uow
from fulfillment.domain.entities.transaction import Transaction
from fulfillment.domain.enums import PaymentMethod
from fulfillment.domain.value_objects import Money
from fulfillment.infrastructure.security import FieldCipher, lookup_hash


def test_cipher_round_trip_and_lookup_hash_is_stable():
    cipher = FieldCipher("secret-a")
    token = cipher.encrypt("pi_123")

    assert token != "pi_123"
    assert cipher.decrypt(token) == "pi_123"
    assert cipher.lookup_hash("pi_123") == FieldCipher("secret-a").lookup_hash("pi_123")
    assert cipher.lookup_hash("pi_123") != FieldCipher("secret-b").lookup_hash("pi_123")


def test_cipher_rejects_foreign_tokens():
    token = FieldCipher("secret-a").encrypt("pi_123")
    with pytest.raises(InvalidToken):
        FieldCipher("secret-b").decrypt(token)


def test_empty_secret_is_rejected():
    with pytest.raises(ValueError):
        FieldCipher("")


@pytest.mark.asyncio
async def test_gateway_id_is_encrypted_in_the_database(session_factory):
    async with create_uow(session_factory) as uow:
        transaction = await uow.transactions.add(
            Transaction(
                order_number="ORD-1700000000000-000001",
                payment_method=PaymentMethod.CARD,
                amount=Money(Decimal("12.50"), "USD"),
                gateway="fake",
                gateway_transaction_id="fake_plaintext_id",
                receipt_url="https://receipts.test/r/1",
            )
        )
        await uow.commit()

    async with session_factory() as session:
        row = (
            await session.execute(
                text("SELECT gateway_transaction_id, receipt_url, gateway_id_hash FROM transactions WHERE id = :id"),
                {"id": transaction.id},
            )
        ).one()

    assert "fake_plaintext_id" not in row[0]
    assert "receipts.test" not in row[1]
    assert row[2] == lookup_hash("fake_plaintext_id")

    async with create_uow(session_factory) as uow:
        found = await uow.transactions.find_by_gateway_id("fake_plaintext_id")
    assert found is not None
    assert found.id == transaction.id
    assert found.gateway_transaction_id == "fake_plaintext_id"
