import base64
import binascii
import logging
from certoracle.responder import const, errors
from flask import Flask, Response, current_app, request
from math import inf
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from urllib.parse import unquote

logger = logging.getLogger(__name__)

ocsp_request_valid = Counter("certoracle_ocsp_request_valid",
    "Valid OCSP requests")
ocsp_request_rejected = Counter("certoracle_ocsp_request_rejected",
    "Rejected OCSP requests", ["reason"])
ocsp_request_size_bytes = Histogram("certoracle_ocsp_request_size_bytes",
    "Histogram of OCSP request size in bytes",
    buckets=(100, 200, 500, 1000, 2000, 5000, 10000, inf))


def decode_path(encoded):
    """
    Decode base64 encoded request from GET path, both URL-safe and
    standard alphabet are accepted and padding is optional
    """
    encoded = unquote(encoded).strip()
    if not encoded:
        raise errors.ParseError("Empty request in GET path")
    encoded = encoded.replace("-", "+").replace("_", "/")
    encoded += "=" * (-len(encoded) % 4)
    try:
        return base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise errors.ParseError("Failed to decode GET path: %s" % e)


def reject(reason):
    ocsp_request_rejected.labels(reason).inc()
    return Response(b"", status=400)


def answer(buf):
    ocsp_request_size_bytes.observe(len(buf))
    try:
        der = current_app.config["OCSP_RESPONDER"].respond(buf)
    except errors.ResponderError as e:
        logger.warning("Rejected %s request from %s: %s: %s",
            request.method, request.remote_addr, e.__class__.__name__, e)
        return reject(e.__class__.__name__)
    except Exception:
        logger.exception("Failed to answer %s request from %s", request.method, request.remote_addr)
        return reject("InternalError")
    ocsp_request_valid.inc()
    logger.debug("Writing response to %s", request.remote_addr)
    return Response(der, status=200, content_type=const.RESPONSE_CONTENT_TYPE)


def view_ocsp_post():
    if request.method == "HEAD":
        return unsupported(None)
    if request.method == "GET":
        logger.warning("Got GET request without encoded request from %s", request.remote_addr)
        return reject("ParseError")

    logger.debug("Got POST request from %s", request.remote_addr)
    if current_app.config["OCSP_STRICT"]:
        # Media type without parameters, lowercased
        if request.mimetype != const.REQUEST_CONTENT_TYPE:
            logger.warning("Strict mode requires Content-Type %s, %s sent %s",
                const.REQUEST_CONTENT_TYPE, request.remote_addr, repr(request.mimetype))
            return reject("ContentType")
    return answer(request.get_data())


def view_ocsp_get(encoded):
    if request.method == "HEAD":
        return unsupported(None)
    logger.debug("Got GET request from %s", request.remote_addr)
    try:
        buf = decode_path(encoded)
    except errors.ParseError as e:
        logger.warning("Rejected GET request from %s: %s", request.remote_addr, e)
        return reject("ParseError")
    return answer(buf)


def view_metrics():
    return Response(generate_latest(), content_type=CONTENT_TYPE_LATEST)


def unsupported(exception):
    logger.warning("Unsupported %s request to %s from %s",
        request.method, request.path, request.remote_addr)
    return reject("Method")


def create_app(responder, strict=False):
    app = Flask(__name__)
    app.config["OCSP_RESPONDER"] = responder
    app.config["OCSP_STRICT"] = strict

    # Standard base64 may contain consecutive slashes
    app.url_map.merge_slashes = False
    app.url_map.strict_slashes = False

    app.add_url_rule("/metrics", "metrics", view_metrics, methods=["GET"],
        provide_automatic_options=False)
    app.add_url_rule("/", "ocsp_post", view_ocsp_post, methods=["GET", "POST"],
        provide_automatic_options=False)
    app.add_url_rule("/<path:encoded>", "ocsp_get", view_ocsp_get, methods=["GET"],
        provide_automatic_options=False)
    app.register_error_handler(404, unsupported)
    app.register_error_handler(405, unsupported)
    return app
