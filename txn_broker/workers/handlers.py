"""Handlers for transaction messages delivered by the subscriptions."""

import logging

from pydantic import ValidationError

from txn_broker.messaging.codec import decode_json
from txn_broker.messaging.exceptions import DecodingError
from txn_broker.schemas import DepositMessage, WithdrawalMessage, transaction_message_adapter

logger = logging.getLogger(__name__)


def decode_transaction_message(body: bytes) -> DepositMessage | WithdrawalMessage:
    """
    Decode a JSON body into a deposit or withdrawal message.

    Numeric amounts keep every digit; they are never rounded through ``float``.

    Raises:
        DecodingError: If the body is not JSON or does not match either variant.
    """
    try:
        return transaction_message_adapter.validate_python(decode_json(body))
    except (ValueError, ValidationError) as e:
        raise DecodingError(f"error parsing transaction message: {e}") from e


async def handle_transaction_message(body: bytes) -> None:
    """
    Log the details of a deposit or withdrawal.

    Expects a JSON body shaped like ``TransactionMessage``.
    """
    txn = decode_transaction_message(body)

    logger.info(
        "Processing transaction: \n"
        f"  - Transaction ID: {txn.txn_id}\n"
        f"  - Payment Ref ID: {txn.payment_ref_id}\n"
        f"  - Status: {txn.status.value}\n"
        f"  - Method: {txn.method}\n"
        f"  - Amount: {txn.amount} {txn.currency}\n"
        f"  - Timestamp: {txn.timestamp.isoformat()}\n"
        f"  - Payee Account: {txn.payee.number} (Bank: {txn.payee.bank_code})\n"
        f"  - Payor Account: {txn.payor.number} (Bank: {txn.payor.bank_code})",
        extra={"transaction_id": txn.txn_id},
    )
