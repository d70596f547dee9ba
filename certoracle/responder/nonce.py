import logging
import threading
from binascii import hexlify
from collections import OrderedDict
from certoracle.responder import const, errors

logger = logging.getLogger(__name__)


class NonceCache(object):
    """
    Bounded record of nonces seen in accepted requests. Once capacity is
    reached the oldest nonce is forgotten first.
    """

    def __init__(self, capacity=const.NONCE_CACHE_SIZE):
        if capacity < 1:
            raise ValueError("Nonce cache capacity must be positive, got %d" % capacity)
        self.capacity = capacity
        self._seen = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._seen)

    def __contains__(self, nonce):
        return nonce in self._seen

    def check_and_add(self, nonce):
        with self._lock:
            if nonce in self._seen:
                raise errors.ReplayDetected("Nonce %s has already been used" % hexlify(nonce).decode("ascii"))
            if len(self._seen) >= self.capacity:
                evicted, _ = self._seen.popitem(last=False)
                logger.debug("Nonce cache full, evicted %s", hexlify(evicted).decode("ascii"))
            self._seen[nonce] = None
