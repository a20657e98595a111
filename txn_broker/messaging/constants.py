"""Module containing constants relevant for RabbitMQ messaging"""

from enum import Enum

CONTENT_TYPE_JSON = "application/json"

# topic exchange wildcards
SINGLE_WORD_WILDCARD = "*"
MULTI_WORD_WILDCARD = "#"

# position of the account id in a routing key such as "deposit.laos.<account>"
ACCOUNT_ID_SEGMENT = 2
UNKNOWN_ACCOUNT_ID = "unknown"

AMQP_SCHEME = "amqp"
AMQPS_SCHEME = "amqps"


class MessageKind(str, Enum):
    """Kind of message flowing through an exchange, used to tag log lines."""

    DEPOSIT = "DEPOSIT"
    WITHDRAW = "WITHDRAW"
