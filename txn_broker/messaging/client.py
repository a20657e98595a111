import asyncio
import contextlib
import logging
import ssl
from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Optional

import aio_pika
from aio_pika import DeliveryMode, ExchangeType, Message, RobustChannel, RobustConnection
from aio_pika.abc import AbstractChannel, AbstractExchange, AbstractIncomingMessage, AbstractQueue
from aio_pika.exceptions import AMQPError, ChannelPreconditionFailed
from pydantic import BaseModel

from txn_broker.config import Settings
from txn_broker.messaging.codec import encode_message, pretty_json
from txn_broker.messaging.constants import CONTENT_TYPE_JSON, MessageKind
from txn_broker.messaging.exceptions import (
    BindError,
    BrokerConnectionError,
    ChannelError,
    ConsumeRegistrationError,
    ExchangeConflictError,
    HandlerError,
    MessagingError,
    PublishError,
    QueueDeclareError,
    SubscribeError,
)
from txn_broker.messaging.routing import account_id_from_routing_key, topic_matches
from txn_broker.messaging.tls import create_ssl_context

logger = logging.getLogger(__name__)

# Receives the raw message body; raising marks the delivery as failed (it is only logged)
MessageHandler = Callable[[bytes], Awaitable[None]]


class Subscription:
    """
    A queue bound to a topic exchange and the task that drains it.

    Deliveries are auto-acknowledged by the broker. They are buffered in arrival
    order and handed to the handler one at a time by a single task, so a slow
    handler only delays its own subscription.
    """

    def __init__(
        self,
        exchange_name: str,
        routing_key_pattern: str,
        message_kind: MessageKind,
        handler: MessageHandler,
        channel: AbstractChannel,
        queue: AbstractQueue,
    ):
        self.exchange_name = exchange_name
        self.routing_key_pattern = routing_key_pattern
        self.message_kind = message_kind
        self.handler = handler

        self._channel = channel
        self._queue = queue
        self._inbox: asyncio.Queue[AbstractIncomingMessage] = asyncio.Queue()
        self._task: Optional[asyncio.Task] = None
        self.consumer_tag: Optional[str] = None

    @property
    def queue_name(self) -> str:
        return self._queue.name

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Register the auto-ack consumer and start the delivery task."""
        try:
            self.consumer_tag = await self._queue.consume(self._on_message, no_ack=True)
        except AMQPError as e:
            raise ConsumeRegistrationError(
                f"Failed to register {self.message_kind.value} consumer on {self.queue_name}: {e}"
            ) from e

        self._task = asyncio.create_task(
            self._run(), name=f"{self.message_kind.value.lower()}-subscription"
        )

        logger.info(
            f"{self.message_kind.value.capitalize()} consumer started "
            f"with topic pattern: {self.routing_key_pattern}",
            extra={"exchange": self.exchange_name, "queue": self.queue_name},
        )

    async def drain(self) -> None:
        """Wait until every buffered delivery has been handled."""
        await self._inbox.join()

    async def stop(self) -> None:
        if self.consumer_tag and not self._channel.is_closed:
            try:
                await self._queue.cancel(self.consumer_tag)
            except AMQPError:
                logger.warning(
                    "Failed to cancel consumer, closing its channel anyway",
                    extra={"queue": self.queue_name},
                    exc_info=True,
                )
        self.consumer_tag = None

        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None

        if not self._channel.is_closed:
            await self._channel.close()

    async def _on_message(self, message: AbstractIncomingMessage) -> None:
        self._inbox.put_nowait(message)

    async def _run(self) -> None:
        while True:
            message = await self._inbox.get()
            try:
                await self._dispatch(message)
            finally:
                self._inbox.task_done()

    async def _dispatch(self, message: AbstractIncomingMessage) -> None:
        routing_key = message.routing_key or ""
        kind = self.message_kind.value

        if not topic_matches(self.routing_key_pattern, routing_key):
            logger.warning(
                f"[{kind}] Dropping message with routing key {routing_key!r} "
                f"not matching {self.routing_key_pattern!r}"
            )
            return

        account_id = account_id_from_routing_key(routing_key)

        logger.info(
            f"[{kind}] Received message:\nTopic: {routing_key}\n"
            f"Account ID: {account_id}\nMessage:\n{pretty_json(message.body)}",
            extra={"routing_key": routing_key, "account_id": account_id},
        )

        # auto-ack already happened, a failed message is not redelivered
        try:
            await self.handler(message.body)
        except HandlerError as e:
            logger.error(
                f"Error processing {kind.lower()} message: {e}",
                extra={"routing_key": routing_key, "account_id": account_id},
            )
        except Exception:
            logger.exception(
                f"Error processing {kind.lower()} message",
                extra={"routing_key": routing_key, "account_id": account_id},
            )


class RabbitMQClient:
    def __init__(
        self,
        url: str,
        ssl_context: Optional[ssl.SSLContext] = None,
        publisher_confirms: bool = False,
    ):
        self.url = url
        self.ssl_context = ssl_context
        self.publisher_confirms = publisher_confirms

        self._connection: Optional[RobustConnection] = None
        self._channel: Optional[RobustChannel] = None
        self._subscriptions: list[Subscription] = []

        # Prevent concurrent connection attempts
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RabbitMQClient":
        """Build a client, including its TLS context, from the settings."""
        ssl_context = None
        if settings.rabbitmq_tls_enabled:
            ssl_context = create_ssl_context(
                ca_cert=settings.rabbitmq_tls_ca_cert or None,
                cert=settings.rabbitmq_tls_cert or None,
                key=settings.rabbitmq_tls_key or None,
                skip_verify=settings.rabbitmq_tls_skip_verify,
            )

        return cls(
            url=settings.get_rabbitmq_url(),
            ssl_context=ssl_context,
            publisher_confirms=settings.rabbitmq_publisher_confirms,
        )

    @property
    def subscriptions(self) -> tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    async def connect(self) -> RobustConnection:
        if self._connection and not self._connection.is_closed:
            return self._connection

        async with self._lock:
            if self._connection and not self._connection.is_closed:
                return self._connection

            logger.debug("Connecting to RabbitMQ...")
            try:
                self._connection = await aio_pika.connect_robust(
                    self.url, ssl_context=self.ssl_context
                )
            except (AMQPError, OSError) as e:
                raise BrokerConnectionError(f"Failed to connect to RabbitMQ: {e}") from e

        logger.debug("Connected to RabbitMQ.")

        return self._connection

    async def get_channel(self) -> RobustChannel:
        if self._channel and not self._channel.is_closed:
            return self._channel

        conn = await self.connect()

        async with self._lock:
            if self._channel and not self._channel.is_closed:
                return self._channel

            try:
                self._channel = await conn.channel(publisher_confirms=self.publisher_confirms)
            except AMQPError as e:
                raise ChannelError(f"Failed to open channel: {e}") from e

        return self._channel

    async def open(self) -> RobustChannel:
        """
        Connect and open the shared channel.

        The connection is closed again when the channel cannot be opened, so a
        failed ``open()`` never leaves a socket behind.
        """
        await self.connect()
        try:
            return await self.get_channel()
        except ChannelError:
            await self.close()
            raise

    async def declare_exchange(
        self,
        name: str,
        exchange_type: ExchangeType = ExchangeType.TOPIC,
        durable: bool = True,
        auto_delete: bool = False,
        channel: Optional[AbstractChannel] = None,
    ) -> AbstractExchange:
        """
        Declare an exchange, a no-op when it already exists with the same properties.

        Raises:
            ExchangeConflictError: If the exchange exists with other properties.
        """
        if channel is None:
            channel = await self.get_channel()

        try:
            return await channel.declare_exchange(
                name, exchange_type, durable=durable, auto_delete=auto_delete
            )
        except ChannelPreconditionFailed as e:
            raise ExchangeConflictError(
                f"Exchange {name!r} already exists with different properties: {e}"
            ) from e

    async def publish(
        self,
        exchange_name: str,
        routing_key: str,
        message: BaseModel | Mapping[str, Any],
        message_kind: MessageKind | str,
        delivery_mode: DeliveryMode = DeliveryMode.NOT_PERSISTENT,
    ) -> None:
        """
        Publish a JSON message to a topic exchange.

        The exchange is declared first (durable, not auto-deleted). The publish is
        fire-and-forget: no mandatory flag and no wait for a broker confirmation
        unless the client was built with ``publisher_confirms=True``.

        Raises:
            ExchangeConflictError: If the exchange exists with other properties.
            EncodingError: If the message cannot be serialized.
            PublishError: If the broker rejects or the transport fails.
            BrokerConnectionError, ChannelError: If the connection or the shared
                channel cannot be (re)opened; these are not ``PublishError``s.
        """
        kind = MessageKind(message_kind)

        try:
            channel = await self.get_channel()
            exchange = await self.declare_exchange(exchange_name, channel=channel)
        except AMQPError as e:
            raise PublishError(f"Failed to declare {kind.value.lower()} exchange: {e}") from e

        body = encode_message(message)

        logger.info(
            f"Publishing {kind.value.lower()} message to topic '{routing_key}':\n{pretty_json(body)}",
            extra={"exchange": exchange_name, "routing_key": routing_key},
        )

        try:
            await exchange.publish(
                Message(
                    body=body,
                    content_type=CONTENT_TYPE_JSON,
                    delivery_mode=delivery_mode,
                ),
                routing_key=routing_key,
                mandatory=False,
            )
        except AMQPError as e:
            raise PublishError(f"Failed to publish {kind.value.lower()} message: {e}") from e

    async def subscribe(
        self,
        exchange_name: str,
        routing_key_pattern: str,
        message_kind: MessageKind | str,
        handler: MessageHandler,
    ) -> Subscription:
        """
        Bind a fresh server-named queue to a topic exchange and consume it.

        Every call gets its own channel and queue (durable, non-exclusive, not
        auto-deleted). Messages are auto-acknowledged; handler failures are
        logged and never cause a redelivery.

        Raises:
            ChannelError, ExchangeConflictError, QueueDeclareError, BindError,
            ConsumeRegistrationError: On setup failures.
        """
        kind = MessageKind(message_kind)
        connection = await self.connect()

        try:
            channel = await connection.channel()
        except AMQPError as e:
            raise ChannelError(f"Failed to open {kind.value.lower()} channel: {e}") from e

        try:
            subscription = await self._setup_subscription(
                channel, exchange_name, routing_key_pattern, kind, handler
            )
        except MessagingError:
            if not channel.is_closed:
                await channel.close()
            raise

        self._subscriptions.append(subscription)

        return subscription

    async def _setup_subscription(
        self,
        channel: AbstractChannel,
        exchange_name: str,
        routing_key_pattern: str,
        kind: MessageKind,
        handler: MessageHandler,
    ) -> Subscription:
        name = kind.value.lower()

        try:
            exchange = await self.declare_exchange(exchange_name, channel=channel)
        except AMQPError as e:
            raise SubscribeError(f"Failed to declare {name} exchange: {e}") from e

        try:
            queue = await channel.declare_queue(
                None, durable=True, exclusive=False, auto_delete=False
            )
        except AMQPError as e:
            raise QueueDeclareError(f"Failed to declare {name} queue: {e}") from e

        try:
            await queue.bind(exchange, routing_key=routing_key_pattern)
        except AMQPError as e:
            raise BindError(f"Failed to bind {name} queue: {e}") from e

        subscription = Subscription(
            exchange_name=exchange_name,
            routing_key_pattern=routing_key_pattern,
            message_kind=kind,
            handler=handler,
            channel=channel,
            queue=queue,
        )
        await subscription.start()

        return subscription

    async def close(self):
        """Graceful shutdown, safe to call more than once"""
        subscriptions, self._subscriptions = self._subscriptions, []
        for subscription in subscriptions:
            await subscription.stop()

        if self._channel and not self._channel.is_closed:
            await self._channel.close()

        if self._connection and not self._connection.is_closed:
            await self._connection.close()

    async def __aenter__(self) -> "RabbitMQClient":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
