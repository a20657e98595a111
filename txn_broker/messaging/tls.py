import logging
import ssl
from typing import Optional

from txn_broker.messaging.exceptions import CertificateLoadError

logger = logging.getLogger(__name__)


def create_ssl_context(
    ca_cert: Optional[str] = None,
    cert: Optional[str] = None,
    key: Optional[str] = None,
    skip_verify: bool = False,
) -> ssl.SSLContext:
    """
    Build the TLS context used for ``amqps://`` connections.

    Args:
        ca_cert: Path to the PEM file of the CA that signed the broker certificate.
            The system trust store is used when omitted.
        cert: Path to the client certificate (requires ``key``).
        key: Path to the client private key (requires ``cert``).
        skip_verify: Accept any server certificate. The CA file is ignored.

    Returns:
        ssl.SSLContext: Client-side context with TLS 1.2 as the minimum version.

    Raises:
        CertificateLoadError: If a file cannot be read or parsed, or only one of
            ``cert`` / ``key`` is given.
    """

    if skip_verify:
        logger.warning(
            "TLS certificate verification is DISABLED for the broker connection; "
            "any server identity will be accepted",
            extra={"ignored_ca_cert": ca_cert},
        )
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    if bool(cert) != bool(key):
        raise CertificateLoadError("Client certificate and key must be provided together")

    try:
        context = ssl.create_default_context(ssl.Purpose.SERVER_AUTH, cafile=ca_cert or None)
    except (OSError, ssl.SSLError) as e:
        raise CertificateLoadError(f"Failed to load CA certificate {ca_cert!r}: {e}") from e

    context.minimum_version = ssl.TLSVersion.TLSv1_2

    if cert and key:
        try:
            context.load_cert_chain(certfile=cert, keyfile=key)
        except (OSError, ssl.SSLError) as e:
            raise CertificateLoadError(f"Failed to load client certificate {cert!r}: {e}") from e

    logger.debug("TLS context created", extra={"ca_cert": ca_cert, "client_cert": cert})

    return context
