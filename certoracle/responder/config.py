import logging
import yaml
from certoracle.responder import const, errors

logger = logging.getLogger(__name__)


def defaults():
    return dict(
        address=const.ADDRESS,
        port=const.PORT,
        ssl=const.SSL,
        tls_cert_path=const.TLS_CERT_PATH,
        tls_key_path=const.TLS_KEY_PATH,
        index_path=const.INDEX_PATH,
        ca_cert_path=const.CA_CERT_PATH,
        responder_cert_path=const.RESPONDER_CERT_PATH,
        responder_key_path=const.RESPONDER_KEY_PATH,
        strict=const.STRICT,
        log_file=const.LOG_FILE,
        nonce_cache_size=const.NONCE_CACHE_SIZE,
        signature_hash=const.SIGNATURE_HASH,
    )


# YAML layout of the responder config file, key path to setting name
YAML_KEYS = {
    ("index_file_path",): "index_path",
    ("responder", "port"): "port",
    ("responder", "address"): "address",
    ("responder", "ssl"): "ssl",
    ("responder", "tls_cert"): "tls_cert_path",
    ("responder", "tls_key"): "tls_key_path",
    ("responder", "private_key"): "responder_key_path",
    ("responder", "cert_file"): "responder_cert_path",
    ("responder", "ca_cert"): "ca_cert_path",
    ("responder", "log_file"): "log_file",
    ("responder", "strict"): "strict",
    ("responder", "nonce_cache_size"): "nonce_cache_size",
    ("responder", "signature_hash"): "signature_hash",
}


class Settings(object):
    """
    Startup parameters of the responder, environment derived defaults
    overridden by config file and command line
    """

    def __init__(self, **overrides):
        self.__dict__.update(defaults())
        self.update(**overrides)

    def update(self, **overrides):
        for key, value in overrides.items():
            if key not in self.__dict__:
                raise errors.ConfigError("Unknown setting %s" % repr(key))
            if value is not None:
                setattr(self, key, value)
        self.validate()
        return self

    def validate(self):
        try:
            self.port = int(self.port)
            self.nonce_cache_size = int(self.nonce_cache_size)
        except (TypeError, ValueError) as e:
            raise errors.ConfigError("Invalid numeric setting: %s" % e)
        if not 0 < self.port < 65536:
            raise errors.ConfigError("Port %d out of range" % self.port)
        if self.nonce_cache_size < 1:
            raise errors.ConfigError("Nonce cache size must be positive")
        if self.signature_hash not in ("sha256", "sha384", "sha512"):
            raise errors.ConfigError("Unsupported signature hash %s" % repr(self.signature_hash))

    @property
    def listen_address(self):
        return self.address or "0.0.0.0"

    @property
    def tls_cert(self):
        return self.tls_cert_path or self.responder_cert_path

    @property
    def tls_key(self):
        return self.tls_key_path or self.responder_key_path


def parse(document):
    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise errors.ConfigError("Configuration must be a mapping, got %s" % type(document).__name__)

    overrides = {}
    for path, key in YAML_KEYS.items():
        node = document
        for component in path:
            if not isinstance(node, dict) or component not in node:
                break
            node = node[component]
        else:
            overrides[key] = node

    responder = document.get("responder")
    log_to_stdout = isinstance(responder, dict) and bool(responder.get("log_to_stdout"))
    return overrides, log_to_stdout


def load(path):
    try:
        with open(path) as fh:
            document = yaml.safe_load(fh)
    except OSError as e:
        raise errors.ConfigError("Can't load configuration file %s: %s" % (path, e))
    except yaml.YAMLError as e:
        raise errors.ConfigError("Can't parse configuration file %s: %s" % (path, e))
    logger.debug("Loaded configuration from %s", path)
    overrides, log_to_stdout = parse(document)
    settings = Settings(**overrides)
    if log_to_stdout:
        settings.log_file = None
    return settings
