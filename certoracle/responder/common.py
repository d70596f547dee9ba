from cryptography import x509
from cryptography.x509.oid import NameOID

MAPPING = {
    NameOID.COMMON_NAME: "CN",
    NameOID.ORGANIZATIONAL_UNIT_NAME: "OU",
    NameOID.ORGANIZATION_NAME: "O",
    NameOID.LOCALITY_NAME: "L",
    NameOID.STATE_OR_PROVINCE_NAME: "ST",
    NameOID.COUNTRY_NAME: "C",
    NameOID.EMAIL_ADDRESS: "E",
}


def cert_to_dn(cert):
    d = []
    for attribute in cert.subject:
        d.append("%s=%s" % (MAPPING.get(attribute.oid, attribute.oid.dotted_string), attribute.value))
    return ", ".join(d)


def cert_to_identity(cert):
    """
    Identity recorded in the index for a certificate: its DNS names if it
    has any, subject distinguished name otherwise
    """
    try:
        names = cert.extensions.get_extension_for_class(x509.SubjectAlternativeName).value
    except x509.ExtensionNotFound:
        names = None
    if names:
        dns = names.get_values_for_type(x509.DNSName)
        if dns:
            return ",".join(dns)
    return cert_to_dn(cert)
