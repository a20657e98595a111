from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from txn_broker.constants import DEFAULT_BANK_CODE, DEFAULT_CURRENCY


class TransactionStatus(str, Enum):
    """Outcome of the transaction on the payment side."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class TransactionMethod(str, Enum):
    """Direction of the money movement."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"


class TxnAccount(BaseModel):
    """Bank account on one side of a transaction."""

    number: str = Field(..., description="Account number", min_length=1)
    currency: str = Field(..., description="Account currency code")
    bank_code: str = Field(..., alias="bankCode", description="Short code of the bank")

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class TransactionMessage(BaseModel):
    """
    Transaction message exchanged over the deposit and withdrawal exchanges.

    Field names follow the JSON keys on the wire (``txnId``, ``paymentRefId``,
    ``bankCode``) through aliases; Python code uses the snake_case names.
    The amount is kept as a ``Decimal`` and serialized as a string so that
    its precision survives the round trip.
    """

    txn_id: str = Field(..., alias="txnId", description="Transaction identifier", min_length=1)
    payment_ref_id: str = Field(
        ..., alias="paymentRefId", description="Payment reference identifier", min_length=1
    )
    status: TransactionStatus = Field(..., description="SUCCESS or FAILED")
    method: TransactionMethod = Field(..., description="DEPOSIT or WITHDRAW")
    amount: Decimal = Field(..., description="Transaction amount, finite, arbitrary precision")
    currency: str = Field(..., description="ISO 4217 currency code", min_length=3, max_length=3)
    timestamp: datetime = Field(..., description="Time the transaction happened")
    payee: TxnAccount
    payor: TxnAccount

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        json_schema_extra={
            "example": {
                "txnId": "DEP20240115143000",
                "paymentRefId": "REF20240115143000",
                "status": TransactionStatus.SUCCESS.value,
                "method": TransactionMethod.DEPOSIT.value,
                "amount": "123.45",
                "currency": "LAK",
                "timestamp": "2024-01-15T14:30:00Z",
                "payee": {"number": "00120010010106019", "currency": "LAK", "bankCode": "JDB"},
                "payor": {"number": "1023635xxx", "currency": "LAK", "bankCode": "KBANK"},
            }
        },
    )

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Normalize the currency code to upper case letters."""
        currency_upper = v.upper()
        if not currency_upper.isalpha():
            raise ValueError(f"Currency must be a 3 letter ISO 4217 code, got: {v}")
        return currency_upper


class DepositMessage(TransactionMessage):
    method: Literal["DEPOSIT"] = TransactionMethod.DEPOSIT.value


class WithdrawalMessage(TransactionMessage):
    method: Literal["WITHDRAW"] = TransactionMethod.WITHDRAW.value


AnyTransactionMessage = Annotated[
    Union[DepositMessage, WithdrawalMessage], Field(discriminator="method")
]

# Decodes a raw JSON body into the right message variant
transaction_message_adapter: TypeAdapter[DepositMessage | WithdrawalMessage] = TypeAdapter(
    AnyTransactionMessage
)


def make_deposit_message(account_id: str, amount: Decimal) -> DepositMessage:
    """Build a sample deposit into ``account_id``."""

    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y%m%d%H%M%S")
    return DepositMessage(
        txn_id=f"DEP{stamp}",
        payment_ref_id=f"REF{stamp}",
        status=TransactionStatus.SUCCESS,
        amount=amount,
        currency=DEFAULT_CURRENCY,
        timestamp=now,
        payee=TxnAccount(number=account_id, currency=DEFAULT_CURRENCY, bank_code=DEFAULT_BANK_CODE),
        payor=TxnAccount(number="n/a", currency=DEFAULT_CURRENCY, bank_code="n/a"),
    )


def make_withdrawal_message(account_id: str, amount: Decimal) -> WithdrawalMessage:
    """Build a sample withdrawal out of ``account_id``."""

    now = datetime.now(timezone.utc)
    stamp = now.strftime("%Y%m%d%H%M%S")
    return WithdrawalMessage(
        txn_id=f"WDR{stamp}",
        payment_ref_id=f"REF{stamp}",
        status=TransactionStatus.SUCCESS,
        amount=amount,
        currency=DEFAULT_CURRENCY,
        timestamp=now,
        payor=TxnAccount(number=account_id, currency=DEFAULT_CURRENCY, bank_code=DEFAULT_BANK_CODE),
        payee=TxnAccount(number="1023635xxx", currency=DEFAULT_CURRENCY, bank_code="KBANK"),
    )


# Example transaction data for testing and documentation
EXAMPLE_DEPOSIT = DepositMessage(
    txn_id="DEP1",
    payment_ref_id="REF1",
    status=TransactionStatus.SUCCESS,
    amount=Decimal("123.45"),
    currency="LAK",
    timestamp=datetime(2024, 1, 15, 14, 30, 0, tzinfo=timezone.utc),
    payee=TxnAccount(number="00120010010106019", currency="LAK", bank_code="JDB"),
    payor=TxnAccount(number="1023635xxx", currency="LAK", bank_code="KBANK"),
)

EXAMPLE_WITHDRAWAL = WithdrawalMessage(
    txn_id="WDR1",
    payment_ref_id="REF2",
    status=TransactionStatus.FAILED,
    amount=Decimal("50.000"),
    currency="LAK",
    timestamp=datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc),
    payee=TxnAccount(number="1023635xxx", currency="LAK", bank_code="KBANK"),
    payor=TxnAccount(number="70120010010106020", currency="LAK", bank_code="JDB"),
)
