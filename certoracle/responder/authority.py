import logging
from certoracle.responder import const, errors
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed448, ed25519, rsa

logger = logging.getLogger(__name__)

HASHES = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def load_certificate(path):
    try:
        with open(path, "rb") as fh:
            buf = fh.read()
    except OSError as e:
        raise errors.CertificateLoadError("Failed to read certificate %s: %s" % (path, e))

    try:
        if b"-----BEGIN" in buf:
            certificate = x509.load_pem_x509_certificate(buf)
        else:
            certificate = x509.load_der_x509_certificate(buf)
        # Parsing is lazy, make sure the fields used later are sane
        certificate.subject.public_bytes()
        public_key_bits(certificate)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise errors.CertificateLoadError("Failed to parse certificate %s: %s" % (path, e))

    logger.info("Loaded certificate %s with serial %x", path, certificate.serial_number)
    return certificate


def load_private_key(path):
    try:
        with open(path, "rb") as fh:
            buf = fh.read()
    except OSError as e:
        raise errors.CertificateLoadError("Failed to read private key %s: %s" % (path, e))

    try:
        if b"-----BEGIN" in buf:
            return serialization.load_pem_private_key(buf, password=None)
        return serialization.load_der_private_key(buf, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise errors.CertificateLoadError("Failed to parse private key %s: %s" % (path, e))


def _der_children(buf, start=0, end=None):
    """
    Iterate over (tag, value offset, end offset) of consecutive DER
    elements in buf[start:end]
    """
    if end is None:
        end = len(buf)
    offset = start
    while offset < end:
        tag = buf[offset]
        length = buf[offset + 1]
        offset += 2
        if length & 0x80:
            octets = length & 0x7f
            if not octets or offset + octets > end:
                raise ValueError("Unsupported DER length encoding")
            length = int.from_bytes(buf[offset:offset + octets], "big")
            offset += octets
        if offset + length > end:
            raise ValueError("Truncated DER element")
        yield tag, offset, offset + length
        offset += length


def public_key_bits(certificate):
    """
    Contents of the subjectPublicKey BIT STRING as it appears in the
    certificate, which is what the issuer key hash of an OCSP CertID is
    computed over
    """
    tbs = certificate.tbs_certificate_bytes
    _, start, end = next(_der_children(tbs))
    fields = [j for j in _der_children(tbs, start, end) if j[0] != 0xa0]
    # serial, signature, issuer, validity, subject, subjectPublicKeyInfo
    if len(fields) < 6:
        raise ValueError("Certificate is missing subjectPublicKeyInfo")
    _, start, end = fields[5]
    children = list(_der_children(tbs, start, end))
    if len(children) != 2 or children[1][0] != 0x03:
        raise ValueError("Malformed subjectPublicKeyInfo")
    _, start, end = children[1]
    # Skip the unused bits octet
    return tbs[start + 1:end]


class Signer(object):
    """
    Holds the responder private key and the digest responses are signed with
    """

    def __init__(self, private_key, hash_algo=const.SIGNATURE_HASH):
        if hash_algo not in HASHES:
            raise ValueError("Unsupported signature hash %s" % repr(hash_algo))
        self.private_key = private_key
        self.hash_algo = hash_algo

    @property
    def algorithm(self):
        # Edwards curve keys have the digest built in
        if isinstance(self.private_key, (ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
            return None
        return HASHES[self.hash_algo]()

    def matches(self, certificate):
        fmt = serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        return self.private_key.public_key().public_bytes(*fmt) == \
            certificate.public_key().public_bytes(*fmt)

    def sign(self, builder):
        """
        Sign OCSP response builder, returning the DER encoded response
        """
        key = self.private_key
        if not isinstance(key, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey,
                ed25519.Ed25519PrivateKey, ed448.Ed448PrivateKey)):
            raise errors.SigningError("Responder key type %s can't be used for signing" % type(key).__name__)
        try:
            response = builder.sign(key, self.algorithm)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise errors.SigningError("Responder key failed to sign: %s" % e)
        return response.public_bytes(serialization.Encoding.DER)

