"""Error taxonomy for the broker harness.

Setup-time errors (connection, channel, declare, bind, consume registration)
propagate to the caller. Per-message errors (decoding, handler) are logged by
the subscriber and never reach the broker.
"""


class MessagingError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(MessagingError):
    """A required configuration value is missing or invalid."""


class BrokerConnectionError(MessagingError, ConnectionError):
    """The transport connection to the broker could not be established."""


class ChannelError(MessagingError):
    """A channel could not be opened on an established connection."""


class CertificateLoadError(MessagingError):
    """A CA certificate, client certificate or key could not be loaded."""


class PublishError(MessagingError):
    pass


class SubscribeError(MessagingError):
    pass


class ExchangeConflictError(PublishError, SubscribeError):
    """The exchange exists with properties that differ from the declaration."""


class EncodingError(PublishError):
    """The outgoing message could not be serialized to JSON."""


class QueueDeclareError(SubscribeError):
    pass


class BindError(SubscribeError):
    pass


class ConsumeRegistrationError(SubscribeError):
    pass


class HandlerError(MessagingError):
    """
    Raised by a message handler to report that it could not process a delivery.

    The subscription logs it as an error without a traceback; any other
    exception escaping a handler is logged with its traceback.
    """


class DecodingError(HandlerError):
    """An incoming message body is not a valid transaction message."""
