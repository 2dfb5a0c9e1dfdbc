"""Building typed transaction requests from loose caller arguments."""

from decimal import Decimal
from typing import Optional, Union

from pydantic import TypeAdapter, ValidationError

from ewallet.ledger.errors import InvalidTransactionRequest
from ewallet.models.transaction import TransactionRequest, TransactionType


_request_adapter = TypeAdapter(TransactionRequest)


def _describe(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "request"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def build_transaction_request(
    type: Union[TransactionType, str],
    amount: Union[Decimal, int, float, str],
    counterparty: Optional[str] = None,
    fee: Optional[Union[Decimal, int, float, str]] = None,
    note: Optional[str] = None,
) -> TransactionRequest:
    """
    Validate loose arguments into the matching request variant.

    Raises:
        InvalidTransactionRequest: unknown type, negative amount or fee,
            or a send without a counterparty
    """
    payload = {
        "type": type.value if isinstance(type, TransactionType) else type,
        "amount": amount,
        "counterparty": counterparty,
        "fee": fee,
        "note": note,
    }
    try:
        return _request_adapter.validate_python(payload)
    except ValidationError as e:
        raise InvalidTransactionRequest(_describe(e)) from e
