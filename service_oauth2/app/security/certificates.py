"""
Client certificate pinning for introspected access tokens.
"""

from typing import Optional, Union
from urllib.parse import unquote

from cryptography import x509
from cryptography.hazmat.primitives.serialization import Encoding

from shared.errors import AccessLayerException
from shared.logging import get_logger

from ..hydra.client import HydraAdminClient
from ..models import Consumer
from ..outcomes import AuthFailure, FailureKind
from ..stores.base import ConsumerStore

CLIENT_CERTIFICATE_HEADER = "PSD2-CERT"
CLIENT_CERTIFICATE_METADATA_KEY = "client_certificate"


def _load_pem(pem: str) -> Optional[x509.Certificate]:
    # Proxies often URL-encode the PEM when forwarding it as a header
    text = pem.strip()
    if "%" in text:
        text = unquote(text)
    try:
        return x509.load_pem_x509_certificate(text.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return None


def compare_pem_certificates(first: str, second: str) -> bool:
    """True when both PEM strings carry the same DER-encoded certificate."""
    cert_a = _load_pem(first)
    cert_b = _load_pem(second)
    if cert_a is None or cert_b is None:
        return False
    return cert_a.public_bytes(Encoding.DER) == cert_b.public_bytes(Encoding.DER)


class CertificateBinder:
    """
    Pins the first client certificate seen for a consumer and enforces it
    afterwards. A mismatch is a hard failure and never updates the record.
    """

    def __init__(self, consumer_store: ConsumerStore, hydra: HydraAdminClient):
        self.consumer_store = consumer_store
        self.hydra = hydra
        self.logger = get_logger("oauth2.security.certificates")

    def enforce(self, consumer: Consumer, certificate: Optional[str]) -> Union[Consumer, AuthFailure]:
        if certificate is None or not certificate.strip():
            return consumer

        if not consumer.client_certificate or not consumer.client_certificate.strip():
            return self._bind(consumer, certificate)

        if not compare_pem_certificates(consumer.client_certificate, certificate):
            self.logger.warning(
                "Client certificate does not match the bound certificate",
                consumer_name=consumer.name,
                consumer_key=consumer.key,
            )
            self.logger.debug(
                "Certificate comparison",
                certificate_in_consumer=consumer.client_certificate,
                certificate_in_request=certificate,
            )
            return AuthFailure.of(FailureKind.CERTIFICATE_MISMATCH, consumer_key=consumer.key)

        self.logger.debug("The token is linked with a proper client certificate", consumer_key=consumer.key)
        return consumer

    def _bind(self, consumer: Consumer, certificate: str) -> Union[Consumer, AuthFailure]:
        # Remote first: a failed mirror leaves the local record unbound.
        try:
            self.hydra.update_client_metadata(consumer.key, {CLIENT_CERTIFICATE_METADATA_KEY: certificate})
        except AccessLayerException as e:
            return AuthFailure.of(FailureKind.UPSTREAM_UNAVAILABLE, consumer_key=consumer.key, error=e.message)

        try:
            bound = self.consumer_store.bind_client_certificate(consumer.key, certificate)
        except AccessLayerException as e:
            return AuthFailure.of(FailureKind.CONSUMER_CREATION_FAILED, consumer_key=consumer.key, error=e.message)

        # A concurrent request may have pinned a different certificate first
        if not compare_pem_certificates(bound.client_certificate or "", certificate):
            return AuthFailure.of(FailureKind.CERTIFICATE_MISMATCH, consumer_key=consumer.key)

        self.logger.info("Client certificate bound to consumer", consumer_key=consumer.key)
        return bound
