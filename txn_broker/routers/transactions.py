import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Request, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from txn_broker.config import Settings
from txn_broker.dependencies import get_app_settings, get_rmq_client
from txn_broker.messaging.client import RabbitMQClient
from txn_broker.messaging.codec import decode_json
from txn_broker.messaging.constants import MessageKind
from txn_broker.messaging.exceptions import MessagingError
from txn_broker.messaging.routing import topic_for_account
from txn_broker.schemas import DepositMessage, TransactionMessage, WithdrawalMessage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])

AccountId = Annotated[str, Path(min_length=1, pattern=r"^[^.*#]+$")]


def transaction_body(model: type[TransactionMessage]):
    """
    Dependency factory parsing the request body into ``model``.

    The body is read raw so numeric amounts become ``Decimal`` without a detour
    through ``float``.
    """

    async def parse(request: Request) -> TransactionMessage:
        try:
            return model.model_validate(decode_json(await request.body()))
        except ValidationError as e:
            raise RequestValidationError(
                e.errors(include_url=False, include_context=False)
            ) from e
        except ValueError as e:
            raise HTTPException(
                status_code=422,
                detail=f"Request body is not valid JSON: {e}",
            ) from e

    return parse


async def _publish(
    client: RabbitMQClient,
    exchange_name: str,
    pattern: str,
    account_id: str,
    message: TransactionMessage,
    kind: MessageKind,
) -> dict:
    try:
        routing_key = topic_for_account(pattern, account_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e)) from e

    try:
        await client.publish(exchange_name, routing_key, message, kind)
    except MessagingError as e:
        logger.exception(
            f"Failed to publish {kind.value.lower()} message",
            extra={"transaction_id": message.txn_id, "routing_key": routing_key},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to publish transaction: {str(e)}",
        ) from e

    logger.info(
        f"Published {kind.value.lower()} message",
        extra={"transaction_id": message.txn_id, "routing_key": routing_key},
    )

    return {
        "txnId": message.txn_id,
        "exchange": exchange_name,
        "routingKey": routing_key,
    }


@router.post("/deposit/{account_id}", status_code=status.HTTP_202_ACCEPTED)
async def publish_deposit(
    account_id: AccountId,
    message: Annotated[DepositMessage, Depends(transaction_body(DepositMessage))],
    client: Annotated[RabbitMQClient, Depends(get_rmq_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """
    Publish a deposit into ``account_id``.

    The account id replaces the wildcard of the configured deposit topic, so with
    ``deposit.laos.*`` the message goes out as ``deposit.laos.<account_id>``.

    Raises:
        HTTPException: 400 for an unusable account id or topic pattern,
            500 on any broker or publish failure.
    """
    return await _publish(
        client,
        settings.rabbitmq_deposit_exchange_name,
        settings.rabbitmq_laos_deposit_topic,
        account_id,
        message,
        MessageKind.DEPOSIT,
    )


@router.post("/withdraw/{account_id}", status_code=status.HTTP_202_ACCEPTED)
async def publish_withdrawal(
    account_id: AccountId,
    message: Annotated[WithdrawalMessage, Depends(transaction_body(WithdrawalMessage))],
    client: Annotated[RabbitMQClient, Depends(get_rmq_client)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> dict:
    """Publish a withdrawal out of ``account_id``."""
    return await _publish(
        client,
        settings.rabbitmq_withdraw_exchange_name,
        settings.rabbitmq_laos_withdrawal_topic,
        account_id,
        message,
        MessageKind.WITHDRAW,
    )
