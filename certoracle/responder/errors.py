class ResponderError(Exception):
    pass

class ParseError(ResponderError):
    pass

class IssuerMismatch(ResponderError):
    pass

class ReplayDetected(ResponderError):
    pass

class SigningError(ResponderError):
    pass

class IndexFormatError(ResponderError):
    def __init__(self, message, lineno=None):
        if lineno is not None:
            message = "line %d: %s" % (lineno, message)
        super(IndexFormatError, self).__init__(message)
        self.lineno = lineno

class ConfigError(ResponderError):
    pass

class FatalError(ResponderError):
    """
    Exception to be raised when user intervention is required
    """
    pass

class CertificateLoadError(FatalError, ParseError):
    pass
