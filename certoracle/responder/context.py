import logging
from certoracle.responder import authority, errors
from certoracle.responder.index import RevocationIndex
from certoracle.responder.nonce import NonceCache

logger = logging.getLogger(__name__)


class ResponderContext(object):
    """
    Everything a request handler needs, assembled once during startup.
    Certificates and the signer are never modified afterwards.
    """

    def __init__(self, settings, ca_certificate, responder_certificate, signer, index, nonces):
        self.settings = settings
        self.ca_certificate = ca_certificate
        self.responder_certificate = responder_certificate
        self.signer = signer
        self.index = index
        self.nonces = nonces

    @classmethod
    def from_settings(cls, settings):
        ca_certificate = authority.load_certificate(settings.ca_cert_path)
        responder_certificate = authority.load_certificate(settings.responder_cert_path)
        signer = authority.Signer(
            authority.load_private_key(settings.responder_key_path),
            settings.signature_hash)
        if not signer.matches(responder_certificate):
            raise errors.CertificateLoadError("Private key %s does not belong to responder certificate %s" % (
                settings.responder_key_path, settings.responder_cert_path))

        index = RevocationIndex(settings.index_path)
        try:
            index.load()
        except errors.IndexFormatError as e:
            # Keep running with empty snapshot, CA tool may fix the file
            logger.error("Initial load of index %s failed: %s", settings.index_path, e)

        return cls(settings, ca_certificate, responder_certificate, signer,
            index, NonceCache(settings.nonce_cache_size))
