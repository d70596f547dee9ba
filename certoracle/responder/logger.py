import logging
import sys

FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def register(log_file=None, debug=False):
    """
    Attach single handler to the certoracle logger hierarchy, writing to
    log file if one is configured or to standard output otherwise
    """
    if log_file:
        handler = logging.FileHandler(log_file)
    else:
        handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(FORMAT))

    root = logging.getLogger("certoracle")
    for j in list(root.handlers):
        root.removeHandler(j)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    root.addHandler(handler)
    return handler
