import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from txn_broker.config import Settings, get_settings
from txn_broker.constants import LOG_FORMAT
from txn_broker.messaging.client import RabbitMQClient
from txn_broker.routers import transactions


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings or get_settings()
    app.state.settings = settings

    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)

    rmq_client = RabbitMQClient.from_settings(settings)
    await rmq_client.open()
    app.state.rmq_client = rmq_client
    yield
    await rmq_client.close()


def initialize_app(settings: Optional[Settings] = None) -> FastAPI:
    """Initialize the FastAPI application."""

    _app = FastAPI(title="Transaction Broker Harness", lifespan=lifespan)
    _app.state.settings = settings

    _app.include_router(transactions.router)

    @_app.get("/", tags=["general"])
    @_app.get("/healthcheck", tags=["general"])
    def health_check():
        return {"status": "alive"}

    return _app


app = initialize_app()
