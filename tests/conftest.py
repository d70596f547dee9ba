"""Shared fixtures: a throwaway PKI, index file and responder context."""

import itertools
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest

_ROOT = str(Path(__file__).resolve().parent.parent)
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, rsa
from cryptography.x509 import ocsp
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from certoracle.responder.config import Settings

_mtime_offset = itertools.count(1)


def _name(common_name):
    return x509.Name([
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Certoracle Test"),
        x509.NameAttribute(NameOID.COMMON_NAME, common_name),
    ])


def _issue(subject, public_key, issuer_name, issuer_key, serial, ca=False, eku=None, dns=None):
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(issuer_name)
        .public_key(public_key)
        .serial_number(serial)
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=ca, path_length=None), critical=True)
    )
    if eku:
        builder = builder.add_extension(x509.ExtendedKeyUsage(eku), critical=False)
    if dns:
        builder = builder.add_extension(
            x509.SubjectAlternativeName([x509.DNSName(j) for j in dns]), critical=False)
    return builder.sign(issuer_key, hashes.SHA256())


def _make_ca(common_name, key=None):
    key = key or rsa.generate_private_key(public_exponent=65537, key_size=2048)
    cert = _issue(_name(common_name), key.public_key(), _name(common_name), key, 1, ca=True)
    return cert, key


@pytest.fixture(scope="session")
def pki():
    ca_cert, ca_key = _make_ca("Certoracle Test CA")
    responder_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    responder_cert = _issue(_name("ocsp.test"), responder_key.public_key(),
        ca_cert.subject, ca_key, 2, eku=[ExtendedKeyUsageOID.OCSP_SIGNING])

    # Same subject, different key
    impostor_cert, impostor_key = _make_ca("Certoracle Test CA")
    foreign_cert, foreign_key = _make_ca("Somebody Else CA")

    leaf_key = ec.generate_private_key(ec.SECP256R1())

    def leaf(serial, issuer=ca_cert, issuer_key=ca_key, dns=("client",)):
        return _issue(_name("client"), leaf_key.public_key(), issuer.subject, issuer_key,
            serial, dns=list(dns))

    def responder_for(key, serial=3):
        return _issue(_name("ocsp.test"), key.public_key(), ca_cert.subject, ca_key,
            serial, eku=[ExtendedKeyUsageOID.OCSP_SIGNING])

    return SimpleNamespace(
        ca_cert=ca_cert,
        ca_key=ca_key,
        responder_cert=responder_cert,
        responder_key=responder_key,
        impostor_cert=impostor_cert,
        impostor_key=impostor_key,
        foreign_cert=foreign_cert,
        foreign_key=foreign_key,
        leaf=leaf,
        responder_for=responder_for,
        make_ca=_make_ca,
    )


def bump_mtime(path):
    """Push mtime forward so consecutive writes are always seen as changes."""
    st = os.stat(path)
    mtime = st.st_mtime_ns + next(_mtime_offset) * 10 ** 9
    os.utime(path, ns=(st.st_atime_ns, mtime))


def write_index(path, *lines):
    Path(path).write_text("".join(line + "\n" for line in lines))
    bump_mtime(path)


def append_index(path, *lines):
    with open(path, "a") as fh:
        fh.write("".join(line + "\n" for line in lines))
    bump_mtime(path)


VALID_01A2 = "V\t260101000000Z\t\t01A2\t/path\tclient"
REVOKED_01A2 = "R\t260101000000Z\t250601000000Z\t01A2\t/path\tclient"


def build_request(cert, issuer, algorithm=None, nonce=None):
    builder = ocsp.OCSPRequestBuilder().add_certificate(cert, issuer, algorithm or hashes.SHA1())
    if nonce is not None:
        builder = builder.add_extension(x509.OCSPNonce(nonce), critical=False)
    return builder.build().public_bytes(serialization.Encoding.DER)


@pytest.fixture()
def settings(tmp_path, pki):
    ca_path = tmp_path / "ca.crt"
    ca_path.write_bytes(pki.ca_cert.public_bytes(serialization.Encoding.PEM))
    cert_path = tmp_path / "responder.crt"
    cert_path.write_bytes(pki.responder_cert.public_bytes(serialization.Encoding.PEM))
    key_path = tmp_path / "responder.key"
    key_path.write_bytes(pki.responder_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption()))
    index_path = tmp_path / "index.txt"
    write_index(index_path, VALID_01A2)

    return Settings(
        index_path=str(index_path),
        ca_cert_path=str(ca_path),
        responder_cert_path=str(cert_path),
        responder_key_path=str(key_path),
        nonce_cache_size=16,
        log_file=None,
    )


@pytest.fixture()
def context(settings):
    from certoracle.responder.context import ResponderContext
    return ResponderContext.from_settings(settings)


@pytest.fixture()
def responder(context):
    from certoracle.responder.protocol import OCSPResponder
    return OCSPResponder(context)
