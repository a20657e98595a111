"""
Pytest configuration and shared fixtures for testing.

This module provides reusable fixtures for:
- Settings built without touching the process environment
- Mocked aio-pika channels, queues and connections
- Mocked RabbitMQ client and FastAPI test client
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from txn_broker.config import Settings
from txn_broker.dependencies import get_rmq_client
from main import initialize_app


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def test_settings() -> Settings:
    """
    Create test settings with the Laos deposit and withdrawal topics.
    """

    return Settings(
        _env_file=None,
        ENV="LOCAL",
        rabbitmq_url="localhost:5672",
        rabbitmq_user="guest",
        rabbitmq_password="guest",
        rabbitmq_deposit_exchange_name="laos_deposit_exchange",
        rabbitmq_withdraw_exchange_name="laos_withdraw_exchange",
        rabbitmq_laos_deposit_topic="deposit.laos.*",
        rabbitmq_laos_withdrawal_topic="withdraw.laos.*",
    )


def make_mock_queue(name: str = "amq.gen-test") -> AsyncMock:
    queue = AsyncMock()
    queue.name = name
    queue.consume.return_value = f"ctag-{name}"
    return queue


def make_mock_channel(queue: AsyncMock | None = None) -> AsyncMock:
    channel = AsyncMock()
    channel.is_closed = False
    channel.declare_queue.return_value = queue or make_mock_queue()
    return channel


def make_mock_message(body: bytes, routing_key: str) -> MagicMock:
    message = MagicMock()
    message.body = body
    message.routing_key = routing_key
    return message


@pytest.fixture
def mock_connection() -> AsyncMock:
    """
    Mocked robust connection.

    Every ``channel()`` call returns a new mocked channel so each subscription
    gets its own, like against a real broker.
    """
    connection = AsyncMock()
    connection.is_closed = False
    connection.channel.side_effect = lambda *args, **kwargs: make_mock_channel(
        make_mock_queue(f"amq.gen-{connection.channel.call_count}")
    )
    return connection


@pytest.fixture
def mock_rmq_client():
    """
    Mock RabbitMQ client to avoid actual message broker calls during tests.

    Usage in tests:
        def test_something(mock_rmq_client):
            # mock_rmq_client.publish.assert_awaited_once()
    """
    mock_client = MagicMock()
    mock_client.publish = AsyncMock(return_value=None)
    mock_client.subscribe = AsyncMock()
    mock_client.open = AsyncMock(return_value=None)
    mock_client.close = AsyncMock(return_value=None)
    mock_client.connect = AsyncMock(return_value=None)

    return mock_client


@pytest.fixture
def app(mock_rmq_client, test_settings: Settings):
    """
    Create a FastAPI application instance for testing.

    The RabbitMQ client dependency is overridden with the mock; the lifespan
    (which would connect to a broker) does not run unless the TestClient is
    used as a context manager.
    """

    app_instance = initialize_app(test_settings)
    app_instance.dependency_overrides[get_rmq_client] = lambda: mock_rmq_client

    yield app_instance

    # Cleanup: Clear dependency overrides after test
    app_instance.dependency_overrides.clear()


@pytest.fixture
def test_client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def make_message():
    """Fixture to build fake deliveries with a body and a routing key."""
    return make_mock_message
