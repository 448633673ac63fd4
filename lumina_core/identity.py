from __future__ import annotations

import hashlib
from typing import Union


def image_id_from_bytes(data: Union[bytes, bytearray, memoryview]) -> str:
    """Content identity of an image: SHA-1 hex of its bytes.

    The key survives renames and moves but changes with any edit to the file.
    """
    return hashlib.sha1(bytes(data)).hexdigest()


def image_id_from_file(path: str, chunk_size: int = 1 << 16) -> str:
    """Same as image_id_from_bytes, streamed from disk."""
    h = hashlib.sha1()
    with open(path, 'rb') as f:
        for chunk in iter(lambda: f.read(chunk_size), b''):
            h.update(chunk)
    return h.hexdigest()
