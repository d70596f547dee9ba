# coding: utf-8

import click
import logging
import os
import pytz
import signal
import ssl
import sys
from datetime import datetime
from certoracle.responder import config, const, errors, index
from certoracle.responder.logger import register
from socketserver import ThreadingMixIn
from wsgiref.simple_server import WSGIRequestHandler, WSGIServer, make_server

logger = logging.getLogger(__name__)


def graceful_exit(signal_number, stack_frame):
    print("Received signal %d, exiting now" % signal_number)
    sys.exit(0)


class ThreadingWSGIServer(ThreadingMixIn, WSGIServer):
    daemon_threads = True


class RequestHandler(WSGIRequestHandler):
    def log_message(self, format, *args):
        logger.debug("%s %s", self.address_string(), format % args)


def index_option(exists=True):
    return click.option("--index", "-i", "index_path", default=const.INDEX_PATH, show_default=True,
        type=click.Path(exists=exists, dir_okay=False), help="Revocation index file")


def parse_serial(serial):
    try:
        return int(index.canonical_serial(serial), 16)
    except ValueError as e:
        raise click.BadParameter(str(e))


@click.command("serve", help="Serve OCSP responder")
@click.option("--config", "-c", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file")
@click.option("--address", "-a", default=None, help="Address to listen on")
@click.option("--port", "-p", default=None, type=int, help="Port to listen on")
@click.option("--ssl/--no-ssl", default=None, help="Serve over TLS")
@click.option("--tls-cert", "tls_cert_path", default=None, help="TLS certificate, responder certificate by default")
@click.option("--tls-key", "tls_key_path", default=None, help="TLS key, responder key by default")
@click.option("--index", "-i", "index_path", default=None, help="Revocation index file")
@click.option("--ca-cert", "ca_cert_path", default=None, help="Certificate of the CA responses are given for")
@click.option("--responder-cert", "responder_cert_path", default=None, help="Responder certificate")
@click.option("--responder-key", "responder_key_path", default=None, help="Responder private key")
@click.option("--strict/--no-strict", default=None, help="Require application/ocsp-request Content-Type")
@click.option("--log-file", default=None, help="Log file, standard output by default")
@click.option("--nonce-cache-size", default=None, type=int, help="Number of nonces remembered")
def certoracle_serve(config_path, **options):
    from certoracle.responder.api.ocsp import create_app
    from certoracle.responder.context import ResponderContext
    from certoracle.responder.protocol import OCSPResponder

    try:
        settings = config.load(config_path) if config_path else config.Settings()
        settings.update(**options)
    except errors.ConfigError as e:
        raise click.ClickException(str(e))

    try:
        register(settings.log_file, debug=const.DEBUG)
    except OSError as e:
        click.echo("Could not open log file %s: %s" % (settings.log_file, e), err=True)
        sys.exit(255)

    # Certificates are prerequisite for answering anything
    try:
        context = ResponderContext.from_settings(settings)
    except errors.FatalError as e:
        logger.error("%s", e)
        click.echo(str(e), err=True)
        sys.exit(255)

    app = create_app(OCSPResponder(context), strict=settings.strict)

    httpd = make_server(settings.listen_address, settings.port, app,
        server_class=ThreadingWSGIServer, handler_class=RequestHandler)
    if settings.ssl:
        try:
            tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
            tls_context.load_cert_chain(settings.tls_cert, settings.tls_key)
        except (OSError, ssl.SSLError) as e:
            logger.error("Failed to load TLS certificate %s: %s", settings.tls_cert, e)
            httpd.server_close()
            sys.exit(255)
        httpd.socket = tls_context.wrap_socket(httpd.socket, server_side=True)

    logger.info("OCSP responder starting on %s:%d with SSL:%s",
        settings.listen_address, settings.port, settings.ssl)
    signal.signal(signal.SIGTERM, graceful_exit)
    with httpd:
        httpd.serve_forever()


@click.command("lookup", help="Show status of certificate by serial")
@index_option()
@click.argument("serial")
def certoracle_lookup(index_path, serial):
    serial = parse_serial(serial)
    record = index.RevocationIndex(index_path).lookup(serial)
    if not record:
        click.echo("%X unknown" % serial)
    elif record.status == index.STATUS_REVOKED:
        click.echo("%X revoked %s" % (serial, index.format_time(record.revocation_time)))
    elif record.status == index.STATUS_VALID:
        click.echo("%X good" % serial)
    else:
        click.echo("%X expired" % serial)


@click.command("list", help="List certificates in index")
@index_option()
def certoracle_list(index_path):
    try:
        records = index.RevocationIndex(index_path).entries()
    except errors.IndexFormatError as e:
        raise click.ClickException("Malformed index %s: %s" % (index_path, e))
    for record in records:
        click.echo("%s %X %s %s %s" % (
            record.status,
            record.serial,
            index.format_time(record.expiration_time),
            index.format_time(record.revocation_time) if record.revocation_time else "-",
            record.distinguished_name))


@click.command("add", help="Add existing certificate to index as valid")
@index_option(exists=False)
@click.argument("certificate", type=click.Path(exists=True, dir_okay=False))
def certoracle_add(index_path, certificate):
    from certoracle.responder.authority import load_certificate
    from certoracle.responder.common import cert_to_identity
    try:
        cert = load_certificate(certificate)
    except errors.CertificateLoadError as e:
        raise click.ClickException(str(e))

    identity = cert_to_identity(cert).replace("\t", " ")
    index.RevocationIndex(index_path).append(index.StatusRecord(
        status=index.STATUS_VALID,
        serial=cert.serial_number,
        expiration_time=cert.not_valid_after_utc.replace(microsecond=0),
        revocation_time=None,
        location=os.path.abspath(certificate),
        distinguished_name=identity))
    click.echo("Added %X %s" % (cert.serial_number, identity))


@click.command("revoke", help="Revoke certificate in index")
@index_option()
@click.option("--time", "-t", "revoked", default=None, help="Revocation time as YYMMDDHHMMSSZ, now by default")
@click.argument("serial")
def certoracle_revoke(index_path, serial, revoked):
    serial = parse_serial(serial)
    if revoked:
        try:
            revocation_time = index.parse_time(revoked)
        except ValueError:
            raise click.BadParameter("Expected YYMMDDHHMMSSZ, got %s" % repr(revoked))
    else:
        revocation_time = datetime.now(pytz.UTC).replace(microsecond=0)

    idx = index.RevocationIndex(index_path)
    try:
        idx.load()
    except errors.IndexFormatError as e:
        raise click.ClickException("Malformed index %s: %s" % (index_path, e))
    record = idx.lookup(serial)
    if not record:
        raise click.ClickException("Certificate %X not found in index" % serial)
    if record.status == index.STATUS_REVOKED:
        raise click.ClickException("Certificate %X already revoked" % serial)

    idx.append(record._replace(status=index.STATUS_REVOKED, revocation_time=revocation_time))
    click.echo("Revoked %X at %s" % (serial, index.format_time(revocation_time)))


@click.group()
def entry_point(): pass


entry_point.add_command(certoracle_serve)
entry_point.add_command(certoracle_lookup)
entry_point.add_command(certoracle_list)
entry_point.add_command(certoracle_add)
entry_point.add_command(certoracle_revoke)

if __name__ == "__main__":
    entry_point()
