import logging
import os
import pytz
import threading
from collections import namedtuple
from datetime import datetime
from certoracle.responder import const, errors
from prometheus_client import Counter

logger = logging.getLogger(__name__)

index_reloads = Counter("certoracle_index_reloads",
    "Revocation index reload attempts", ["result"])

STATUS_VALID = "V"
STATUS_REVOKED = "R"
STATUS_EXPIRED = "E"
STATUSES = (STATUS_VALID, STATUS_REVOKED, STATUS_EXPIRED)

FIELD_COUNT = 6

StatusRecord = namedtuple("StatusRecord", (
    "status",
    "serial",
    "expiration_time",
    "revocation_time",
    "location",
    "distinguished_name"))


def canonical_serial(serial):
    """
    Map integer or hex string serial to index key, uppercase hex without
    padding so that 01a2, 0x1A2 and 418 all resolve to the same entry
    """
    if isinstance(serial, str):
        try:
            serial = int(serial, 16)
        except ValueError:
            raise ValueError("Invalid serial number %s" % repr(serial))
    if not isinstance(serial, int) or serial < 0:
        raise ValueError("Invalid serial number %s" % repr(serial))
    return "%X" % serial


def parse_time(value):
    return datetime.strptime(value, const.INDEX_DATE_FORMAT).replace(tzinfo=pytz.UTC)


def format_time(dt):
    return dt.astimezone(pytz.UTC).strftime(const.INDEX_DATE_FORMAT)


def parse_line(line, lineno=None):
    fields = line.split("\t")
    if len(fields) != FIELD_COUNT:
        raise errors.IndexFormatError(
            "expected %d tab separated fields, got %d" % (FIELD_COUNT, len(fields)), lineno)
    status, expires, revoked, serial, location, dn = fields

    if status not in STATUSES:
        raise errors.IndexFormatError("invalid status flag %s" % repr(status), lineno)

    try:
        expiration_time = parse_time(expires)
    except ValueError:
        raise errors.IndexFormatError("invalid expiration time %s" % repr(expires), lineno)

    revocation_time = None
    if status == STATUS_REVOKED:
        try:
            revocation_time = parse_time(revoked)
        except ValueError:
            raise errors.IndexFormatError("invalid revocation time %s" % repr(revoked), lineno)

    try:
        serial = int(serial, 16)
    except ValueError:
        raise errors.IndexFormatError("invalid serial %s" % repr(serial), lineno)

    return StatusRecord(status, serial, expiration_time, revocation_time, location, dn)


def format_line(record):
    return "\t".join((
        record.status,
        format_time(record.expiration_time),
        format_time(record.revocation_time) if record.status == STATUS_REVOKED else "",
        canonical_serial(record.serial),
        record.location or "unknown",
        record.distinguished_name)) + "\n"


def parse(buf):
    """
    Build a fresh serial to record mapping out of index file contents,
    later lines override earlier ones for the same serial
    """
    entries = {}
    for lineno, line in enumerate(buf.split("\n"), 1):
        line = line.rstrip("\r")
        if not line:
            continue
        record = parse_line(line, lineno)
        entries[canonical_serial(record.serial)] = record
    return entries


class RevocationIndex(object):
    def __init__(self, path):
        self.path = path
        self.mtime = None
        self._failed_mtime = None
        self._snapshot = {}
        self._lock = threading.Lock()

        # Index is written by the CA tool, start out empty if it hasn't yet
        if not os.path.exists(path):
            logger.info("Index file %s does not exist, creating empty one", path)
            with open(path, "a"):
                pass

    @property
    def snapshot(self):
        return self._snapshot

    def load(self):
        """
        Reload the index if the file has been modified since last successful
        load. Returns True if a new snapshot was published.
        """
        if os.stat(self.path).st_mtime_ns == self.mtime:
            return False

        with self._lock:
            # Stat before read, an append racing with us bumps mtime again
            mtime = os.stat(self.path).st_mtime_ns
            if mtime in (self.mtime, self._failed_mtime):
                return False

            logger.info("Index %s has changed, reloading", self.path)
            with open(self.path, "rb") as fh:
                buf = fh.read()

            try:
                entries = parse(buf.decode("utf-8"))
            except UnicodeDecodeError as e:
                self._failed_mtime = mtime
                index_reloads.labels("failure").inc()
                raise errors.IndexFormatError("index is not valid UTF-8: %s" % e)
            except errors.IndexFormatError:
                self._failed_mtime = mtime
                index_reloads.labels("failure").inc()
                raise

            self._snapshot = entries
            self.mtime = mtime
            self._failed_mtime = None
            index_reloads.labels("success").inc()
            logger.info("Loaded %d entries from index %s", len(entries), self.path)
            return True

    def lookup(self, serial):
        """
        Return current StatusRecord for the serial or None if index has no
        entry for it
        """
        key = canonical_serial(serial)
        try:
            self.load()
        except errors.IndexFormatError as e:
            logger.error("Failed to reload index %s, serving previous snapshot: %s", self.path, e)
        except OSError as e:
            logger.error("Failed to read index %s, serving previous snapshot: %s", self.path, e)
        record = self._snapshot.get(key)
        logger.debug("Looked up serial 0x%s: %s", key, record.status if record else "not found")
        return record

    def entries(self):
        self.load()
        return sorted(self._snapshot.values(), key=lambda r: r.serial)

    def append(self, record):
        line = format_line(record)
        with self._lock:
            with open(self.path, "a") as fh:
                fh.write(line)
        logger.info("Appended %s entry for serial 0x%s to %s",
            record.status, canonical_serial(record.serial), self.path)
