"""
Fee Schedule and Balance Arithmetic

The default fee is proportional with a floor:

    fee = max(MIN_FEE, round(amount * FEE_RATE, 2))

and the effect on the owner's balance depends on direction:

    send                       balance -= amount + fee
    receive / topup / refund   balance += amount - fee

Rounding is half-up to the cent.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict

from ewallet.models.transaction import TransactionType


CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round a value to whole cents, half-up."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_fee(amount: Decimal, min_fee: Decimal, fee_rate: Decimal) -> Decimal:
    """Default fee for an amount when the caller does not supply one."""
    return max(to_money(min_fee), to_money(Decimal(amount) * Decimal(fee_rate)))


def compute_total(transaction_type: TransactionType, amount: Decimal, fee: Decimal) -> Decimal:
    """Display total: what leaves the wallet for a send, what arrives otherwise."""
    if transaction_type.is_debit:
        return amount + fee
    return amount - fee


def net_effect(transaction_type: TransactionType, amount: Decimal, fee: Decimal) -> Decimal:
    """Signed change applied to the owner's balance."""
    if transaction_type.is_debit:
        return -(amount + fee)
    return amount - fee


def apply_to_balance(
    balance: Decimal,
    transaction_type: TransactionType,
    amount: Decimal,
    fee: Decimal,
) -> Decimal:
    """New balance after a transaction, rounded to the cent."""
    return to_money(balance + net_effect(transaction_type, amount, fee))


class FeeQuote(BaseModel):
    """What a transaction will cost, computed before it is confirmed."""
    model_config = ConfigDict(frozen=True)

    type: TransactionType
    amount: Decimal
    fee: Decimal
    total: Decimal
    net_effect: Decimal


def quote(
    transaction_type: TransactionType,
    amount: Decimal,
    min_fee: Decimal,
    fee_rate: Decimal,
    fee: Optional[Decimal] = None,
) -> FeeQuote:
    """Preview fee, total and balance effect without touching the ledger."""
    amount = Decimal(str(amount))
    if fee is None:
        fee = compute_fee(amount, min_fee, fee_rate)
    else:
        fee = Decimal(str(fee))
    return FeeQuote(
        type=transaction_type,
        amount=amount,
        fee=fee,
        total=compute_total(transaction_type, amount, fee),
        net_effect=net_effect(transaction_type, amount, fee),
    )
