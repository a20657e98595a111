from fastapi import Request

from txn_broker.config import Settings
from txn_broker.messaging.client import RabbitMQClient


def get_app_settings(request: Request) -> Settings:
    """FastAPI dependency returning the settings the app was started with."""
    return request.app.state.settings


def get_rmq_client(request: Request) -> RabbitMQClient:
    """
    FastAPI dependency for getting the RabbitMQ client.

    The client is created and opened by the application lifespan.
    """
    return request.app.state.rmq_client
