"""Consumer worker for the Laos deposit and withdrawal topics."""

import asyncio
import logging
import signal
import sys
from typing import Optional

from txn_broker.config import Settings, load_settings
from txn_broker.constants import LOG_FORMAT
from txn_broker.messaging.client import RabbitMQClient
from txn_broker.messaging.constants import MessageKind
from txn_broker.messaging.exceptions import MessagingError
from txn_broker.workers.handlers import handle_transaction_message

logger = logging.getLogger(__name__)


async def start_consumers(client: RabbitMQClient, settings: Settings) -> None:
    """Subscribe the transaction handler to the deposit and withdrawal topics."""

    await client.subscribe(
        exchange_name=settings.rabbitmq_deposit_exchange_name,
        routing_key_pattern=settings.rabbitmq_laos_deposit_topic,
        message_kind=MessageKind.DEPOSIT,
        handler=handle_transaction_message,
    )

    await client.subscribe(
        exchange_name=settings.rabbitmq_withdraw_exchange_name,
        routing_key_pattern=settings.rabbitmq_laos_withdrawal_topic,
        message_kind=MessageKind.WITHDRAW,
        handler=handle_transaction_message,
    )


def install_shutdown_handlers(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)


async def main(settings: Settings, stop: Optional[asyncio.Event] = None) -> None:
    """
    Entry point for the consumer worker.

    Connects to RabbitMQ, starts both subscriptions and waits for SIGINT or
    SIGTERM (or for ``stop`` to be set), then closes everything.
    """

    if stop is None:
        stop = asyncio.Event()
        install_shutdown_handlers(stop)

    client = RabbitMQClient.from_settings(settings)

    try:
        await client.open()
        await start_consumers(client, settings)

        logger.info("RabbitMQ consumer started. Press CTRL+C to exit")
        await stop.wait()
        logger.info("Shutting down RabbitMQ consumer...")
    finally:
        await client.close()


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
        logger.critical(f"Failed to set up consumer: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(run())
