import os
from datetime import timedelta


def getenv_in(key, default, *vals):
    val = os.getenv(key, default)
    if val not in (default,) + vals:
        raise ValueError("Got %s for %s, expected one of %s" % (repr(val), key, vals))
    return val


def getenv_bool(key, default=False):
    val = os.getenv(key)
    if val is None:
        return default
    return val.lower() in ("1", "true", "yes", "on")


# Listener
ADDRESS = os.getenv("OCSP_ADDRESS", "")
PORT = int(os.getenv("OCSP_PORT", 8888))
SSL = getenv_bool("OCSP_SSL")
STRICT = getenv_bool("OCSP_STRICT")

# Revocation log maintained by the CA tool
INDEX_PATH = os.getenv("OCSP_INDEX_PATH", "index.txt")
INDEX_DATE_FORMAT = "%y%m%d%H%M%SZ"

# Certificates are loaded once during startup
CA_CERT_PATH = os.getenv("OCSP_CA_CERT_PATH", "ca.crt")
RESPONDER_CERT_PATH = os.getenv("OCSP_RESPONDER_CERT_PATH", "responder.crt")
RESPONDER_KEY_PATH = os.getenv("OCSP_RESPONDER_KEY_PATH", "responder.key")

# Transport TLS falls back to responder keypair
TLS_CERT_PATH = os.getenv("OCSP_TLS_CERT_PATH")
TLS_KEY_PATH = os.getenv("OCSP_TLS_KEY_PATH")

LOG_FILE = os.getenv("OCSP_LOG_FILE")

NONCE_CACHE_SIZE = int(os.getenv("OCSP_NONCE_CACHE_SIZE", 1024))
SIGNATURE_HASH = getenv_in("OCSP_SIGNATURE_HASH", "sha256", "sha384", "sha512")

# thisUpdate and nextUpdate lie this far before and after the signing instant
RESPONSE_VALIDITY = timedelta(days=1)

REQUEST_CONTENT_TYPE = "application/ocsp-request"
RESPONSE_CONTENT_TYPE = "application/ocsp-response"

DEBUG = bool(os.getenv("DEBUG"))
