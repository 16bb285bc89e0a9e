"""
Streaming copy utilities.
Chunked stream-to-file writes with bounded memory for asset downloads.
"""

from pathlib import Path
from typing import AsyncIterator, Iterator, Union

from render_transfer.s3.config import READ_CHUNK_SIZE

PathLike = Union[str, Path]


def iter_body_chunks(body, chunk_size: int = READ_CHUNK_SIZE) -> Iterator[bytes]:
    """
    Iterate a botocore StreamingBody (or any readable) in fixed-size chunks.

    Only one chunk is held at a time, so memory use is bounded by chunk_size
    no matter how large the object is.
    """
    if hasattr(body, "iter_chunks"):
        yield from body.iter_chunks(chunk_size=chunk_size)
        return

    while True:
        chunk = body.read(chunk_size)
        if not chunk:
            return
        yield chunk


def write_chunks(chunks: Iterator[bytes], destination: PathLike) -> int:
    """
    Copy a chunk iterator into a local file.

    Args:
        chunks: Iterator yielding byte chunks
        destination: Local file path (created or truncated)

    Returns:
        Number of bytes written
    """
    total_bytes = 0
    with open(destination, "wb") as f:
        for chunk in chunks:
            f.write(chunk)
            total_bytes += len(chunk)
    return total_bytes


async def awrite_chunks(chunks: AsyncIterator[bytes], destination: PathLike) -> int:
    """
    Async variant of write_chunks for HTTP response bodies.

    Args:
        chunks: Async iterator yielding byte chunks
        destination: Local file path (created or truncated)

    Returns:
        Number of bytes written
    """
    total_bytes = 0
    with open(destination, "wb") as f:
        async for chunk in chunks:
            f.write(chunk)
            total_bytes += len(chunk)
    return total_bytes
