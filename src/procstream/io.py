"""Non-blocking pipe reads."""

from __future__ import annotations

import os

READ_CHUNK_SIZE = 8192


def set_nonblocking(fd: int) -> None:
    os.set_blocking(fd, False)


def read_until_block(fd: int) -> tuple[bytes, bool]:
    """Read everything currently available from a non-blocking *fd*.

    Returns the bytes read and whether end-of-file was reached. Reading
    stops as soon as the descriptor would block.
    """
    chunks: list[bytes] = []
    eof = False
    while True:
        try:
            chunk = os.read(fd, READ_CHUNK_SIZE)
        except BlockingIOError:
            break
        if not chunk:
            eof = True
            break
        chunks.append(chunk)
    return b"".join(chunks), eof
