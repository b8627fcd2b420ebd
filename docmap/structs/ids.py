"""
Generation of the document ids for the new documents.

The ids are 24-char hex strings in the same layout as the stores' own ids:
4 bytes of the creation time, 5 random bytes (per process), and 3 bytes
of a counter. So, they are sortable by creation time to the second,
and unique within the process even if created in the same second.
"""
import binascii
import itertools
import os
import random
import threading
import time

_RANDOM = binascii.b2a_hex(os.urandom(5)).decode('ascii')
_COUNTER = itertools.count(random.randint(0, 0xFFFFFF))
_LOCK = threading.Lock()


def generate_id() -> str:
    """ Generate a 24-char hex string similar to the stores' object ids. """
    with _LOCK:
        counter = next(_COUNTER) & 0xFFFFFF
    return f"{int(time.time()) & 0xFFFFFFFF:08x}{_RANDOM}{counter:06x}"
