"""Enums for the Wallet Service models."""

import enum


def enum_values(enum_cls):
    """Return persistent DB values for SAEnum mappings."""
    return [member.value for member in enum_cls]


class TransactionType(str, enum.Enum):
    REFUND = "refund"
    ADJUSTMENT = "adjustment"
    PURCHASE = "purchase"


class TransactionDirection(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"
