"""Publish sample deposit and withdrawal messages for a few accounts."""

import asyncio
import logging
import random
import sys
from collections.abc import Iterable
from decimal import Decimal

from txn_broker.config import Settings, load_settings
from txn_broker.constants import LOG_FORMAT, SAMPLE_ACCOUNT_IDS, SAMPLE_PUBLISH_DELAY
from txn_broker.messaging.client import RabbitMQClient
from txn_broker.messaging.constants import MessageKind
from txn_broker.messaging.exceptions import MessagingError
from txn_broker.messaging.routing import topic_for_account
from txn_broker.schemas import make_deposit_message, make_withdrawal_message

logger = logging.getLogger(__name__)


def random_amount() -> Decimal:
    # up to 10,000.00 with two decimal places
    return Decimal(random.randrange(1_000_000)) / 100


async def publish_samples(
    client: RabbitMQClient,
    settings: Settings,
    account_ids: Iterable[str] = SAMPLE_ACCOUNT_IDS,
    delay: float = SAMPLE_PUBLISH_DELAY,
) -> int:
    """
    Publish one deposit and one withdrawal per account.

    Failures are logged and do not stop the run.

    Returns:
        int: Number of messages that could not be published.
    """

    deposit_pattern = settings.rabbitmq_laos_deposit_topic
    withdraw_pattern = settings.rabbitmq_laos_withdrawal_topic

    logger.info(f"Using deposit topic pattern: {deposit_pattern}")
    logger.info(f"Using withdraw topic pattern: {withdraw_pattern}")

    failures = 0

    for account_id in account_ids:
        jobs = (
            (
                MessageKind.DEPOSIT,
                settings.rabbitmq_deposit_exchange_name,
                topic_for_account(deposit_pattern, account_id),
                make_deposit_message(account_id, random_amount()),
            ),
            (
                MessageKind.WITHDRAW,
                settings.rabbitmq_withdraw_exchange_name,
                topic_for_account(withdraw_pattern, account_id),
                make_withdrawal_message(account_id, random_amount()),
            ),
        )

        for kind, exchange_name, topic, message in jobs:
            name = kind.value.lower()
            logger.info(f"Publishing to {name} topic: {topic}")
            try:
                await client.publish(exchange_name, topic, message, kind)
            except MessagingError as e:
                failures += 1
                logger.error(f"Failed to publish {name} message for account {account_id}: {e}")
            else:
                logger.info(f"Successfully published {name} message for account {account_id}")

        await asyncio.sleep(delay)

    if failures:
        logger.warning(f"{failures} test message(s) could not be published")
    else:
        logger.info("All test messages published successfully")

    return failures


async def main(settings: Settings) -> int:
    async with RabbitMQClient.from_settings(settings) as client:
        return await publish_samples(client, settings)


def run() -> int:
    try:
        settings = load_settings()
    except MessagingError as e:
        logging.basicConfig(level=logging.ERROR, format=LOG_FORMAT)
        logger.critical(f"Failed to load config: {e}")
        return 1

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    try:
        asyncio.run(main(settings))
    except MessagingError as e:
        logger.critical(f"Failed to create producer: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(run())
