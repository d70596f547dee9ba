import hashlib
import logging
import pytz
from collections import namedtuple
from datetime import datetime
from certoracle.responder import authority, const, errors, index
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.x509 import ocsp
from prometheus_client import Counter

logger = logging.getLogger(__name__)

ocsp_response_status = Counter("certoracle_ocsp_response_status",
    "Status responses", ["status"])
ocsp_request_nonce = Counter("certoracle_ocsp_request_nonce",
    "Requests carrying nonce")

GOOD = "good"
REVOKED = "revoked"
UNKNOWN = "unknown"

CERT_STATUS = {
    GOOD: ocsp.OCSPCertStatus.GOOD,
    REVOKED: ocsp.OCSPCertStatus.REVOKED,
    UNKNOWN: ocsp.OCSPCertStatus.UNKNOWN,
}

# Digest algorithms accepted in the CertID of a request
ISSUER_HASHES = ("sha1", "sha224", "sha256", "sha384", "sha512")

Request = namedtuple("Request", (
    "hash_algorithm",
    "issuer_name_hash",
    "issuer_key_hash",
    "serial",
    "nonce"))

Classification = namedtuple("Classification", ("status", "revoked_at"))


def parse_request(buf):
    """
    Decode DER encoded OCSP request carrying a single certificate query
    """
    try:
        req = ocsp.load_der_ocsp_request(buf)
        hash_algorithm = req.hash_algorithm
        try:
            nonce = req.extensions.get_extension_for_class(x509.OCSPNonce).value
        except x509.ExtensionNotFound:
            nonce = None
        request = Request(
            hash_algorithm=hash_algorithm,
            issuer_name_hash=req.issuer_name_hash,
            issuer_key_hash=req.issuer_key_hash,
            serial=req.serial_number,
            nonce=nonce.nonce if nonce is not None else None)
    except UnsupportedAlgorithm as e:
        raise errors.ParseError("Unsupported CertID hash algorithm: %s" % e)
    except (ValueError, TypeError, x509.DuplicateExtension, x509.UnsupportedGeneralNameType) as e:
        raise errors.ParseError("Malformed OCSP request: %s" % e)

    if request.serial < 0:
        raise errors.ParseError("Negative serial number in request")
    return request


class OCSPResponder(object):
    def __init__(self, context):
        self.context = context

    def verify_issuer(self, request):
        """
        Make sure the request is meant for certificates of our CA
        """
        name = request.hash_algorithm.name
        if name not in ISSUER_HASHES:
            raise errors.ParseError("Unsupported CertID hash algorithm %s" % name)

        ca_certificate = self.context.ca_certificate
        name_hash = hashlib.new(name, ca_certificate.subject.public_bytes()).digest()
        if name_hash != request.issuer_name_hash:
            raise errors.IssuerMismatch("Issuer name hash does not match")

        key_hash = hashlib.new(name, authority.public_key_bits(ca_certificate)).digest()
        if key_hash != request.issuer_key_hash:
            raise errors.IssuerMismatch("Issuer key hash does not match")

    def classify(self, serial):
        record = self.context.index.lookup(serial)
        if record is None:
            return Classification(UNKNOWN, None)
        if record.status == index.STATUS_VALID:
            return Classification(GOOD, None)
        if record.status == index.STATUS_REVOKED:
            return Classification(REVOKED, record.revocation_time)
        # Expired entries are not answered for
        return Classification(UNKNOWN, None)

    def build_response(self, request, classification, nonce=None, now=None):
        if now is None:
            now = datetime.now(pytz.UTC)
        now = now.replace(microsecond=0)

        builder = ocsp.OCSPResponseBuilder().add_response_by_hash(
            issuer_name_hash=request.issuer_name_hash,
            issuer_key_hash=request.issuer_key_hash,
            serial_number=request.serial,
            algorithm=request.hash_algorithm,
            cert_status=CERT_STATUS[classification.status],
            this_update=now - const.RESPONSE_VALIDITY,
            next_update=now + const.RESPONSE_VALIDITY,
            revocation_time=classification.revoked_at,
            revocation_reason=None)

        responder_certificate = self.context.responder_certificate
        builder = builder.responder_id(ocsp.OCSPResponderEncoding.HASH, responder_certificate)
        builder = builder.certificates([responder_certificate])

        if nonce is not None:
            builder = builder.add_extension(x509.OCSPNonce(nonce), critical=False)

        return self.context.signer.sign(builder)

    def respond(self, buf):
        """
        Take DER encoded request, return DER encoded signed response or
        raise ResponderError subclass explaining why it was rejected
        """
        request = parse_request(buf)
        self.verify_issuer(request)

        classification = self.classify(request.serial)
        logger.debug("Certificate 0x%x is %s", request.serial, classification.status)

        buf = self.build_response(request, classification, request.nonce)

        # Nonce is consumed only by a response that was actually signed
        if request.nonce is not None:
            ocsp_request_nonce.inc()
            self.context.nonces.check_and_add(request.nonce)

        ocsp_response_status.labels(classification.status).inc()
        return buf
