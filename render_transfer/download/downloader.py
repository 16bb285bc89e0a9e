"""
Asset downloader for render inputs.

Copies one remote object into one local file, streaming chunk by chunk:
- audio tracks from the managed asset bucket (by object path)
- cover images from arbitrary HTTP(S) URLs

No retries and no resume: a failed copy raises DownloadError and any
partial file is left for the caller, who owns the working directory.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple, Union

import httpx
from botocore.exceptions import BotoCoreError, ClientError

from render_transfer.core.exceptions import DownloadError
from render_transfer.s3.config import DOWNLOAD_TIMEOUT_SECONDS, READ_CHUNK_SIZE
from render_transfer.schemas import HttpRef, ObjectStoreRef, TransferSource
from render_transfer.utils.streaming import awrite_chunks, iter_body_chunks, write_chunks

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def _until_stopped(chunks: Iterator[bytes], stop_event: threading.Event, object_path: str) -> Iterator[bytes]:
    for chunk in chunks:
        if stop_event.is_set():
            raise DownloadError(f"Download of {object_path} cancelled", details={"path": object_path})
        yield chunk


def create_http_client(timeout: float = DOWNLOAD_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """HTTP client for URL downloads: bounded connect, unbounded body reads."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, read=None),  # Allow streaming
        follow_redirects=True
    )


class AssetDownloader:
    """
    Streams input assets to local files.

    Usage:
        downloader = AssetDownloader(s3_client, store_bucket="assets")
        await downloader.download_from_store("audio/track.mp3", "/tmp/render/track_0.mp3")
        await downloader.download_from_url("https://example.com/cover.jpg", "/tmp/render/cover.jpg")
        await downloader.aclose()
    """

    def __init__(
        self,
        client,
        store_bucket: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = DOWNLOAD_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ):
        """
        Args:
            client: boto3 S3 client for the managed asset store
            store_bucket: Bucket holding the assets
            http_client: Shared HTTP client (None = create and own one)
            timeout: Seconds allowed until response headers arrive
            max_workers: Threads for blocking store reads
        """
        self.client = client
        self.store_bucket = store_bucket
        self.timeout = timeout
        self._owns_http_client = http_client is None
        self.http_client = http_client or create_http_client(timeout)
        self.download_executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="asset-download"
        )

    async def download(self, source: TransferSource, local_path: PathLike) -> int:
        """Download any TransferSource to local_path. Returns bytes written."""
        if isinstance(source, ObjectStoreRef):
            return await self.download_from_store(source.path, local_path)
        if isinstance(source, HttpRef):
            return await self.download_from_url(source.url, local_path)
        raise TypeError(f"Unsupported transfer source: {type(source).__name__}")

    async def download_all(self, items: Sequence[Tuple[TransferSource, PathLike]]) -> List[int]:
        """
        Download several assets concurrently.

        The first failure cancels the downloads still running and waits for
        them to stop before it is raised, so no copy keeps writing into the
        destination directory afterwards.

        Args:
            items: (source, local_path) pairs; destinations must be distinct

        Returns:
            Bytes written per item, in input order
        """
        destinations = [str(Path(local_path)) for _, local_path in items]
        if len(set(destinations)) != len(destinations):
            raise ValueError("Each download needs its own destination path")

        tasks = [
            asyncio.ensure_future(self.download(source, local_path))
            for source, local_path in items
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def download_from_store(self, object_path: str, local_path: PathLike) -> int:
        """
        Copy an object from the managed asset bucket to a local file.

        Args:
            object_path: Object key inside the asset bucket
            local_path: Destination file path

        Returns:
            Number of bytes written

        Raises:
            DownloadError: If reading the object or writing the file fails
        """
        loop = asyncio.get_running_loop()
        stop_event = threading.Event()
        future = loop.run_in_executor(
            self.download_executor, self._copy_object, object_path, local_path, stop_event
        )
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            # The worker thread stops at its next chunk; wait for it to let go of the file
            stop_event.set()
            await asyncio.gather(future, return_exceptions=True)
            raise

    async def download_from_url(self, url: str, local_path: PathLike) -> int:
        """
        Copy an HTTP(S) resource to a local file.

        The timeout covers connecting and receiving response headers; the
        body is streamed for as long as it takes.

        Args:
            url: Resource URL
            local_path: Destination file path

        Returns:
            Number of bytes written

        Raises:
            DownloadError: On non-2xx status (before the file is opened),
                timeout, network or file errors
        """
        request = self.http_client.build_request("GET", url)
        try:
            response = await asyncio.wait_for(
                self.http_client.send(request, stream=True),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise DownloadError(
                f"Timed out after {self.timeout:.0f}s waiting for {url}",
                details={"url": url},
            ) from e
        except httpx.HTTPError as e:
            raise DownloadError(f"Failed to download {url}: {e}", details={"url": url}) from e

        try:
            if not response.is_success:
                raise DownloadError(
                    f"Failed to download {url}: HTTP {response.status_code}",
                    status_code=response.status_code,
                    details={"url": url},
                )

            Path(local_path).parent.mkdir(parents=True, exist_ok=True)
            total_bytes = await awrite_chunks(response.aiter_bytes(READ_CHUNK_SIZE), local_path)

        except httpx.HTTPError as e:
            raise DownloadError(
                f"Failed to download {url}: {e}",
                status_code=response.status_code,
                details={"url": url},
            ) from e
        except OSError as e:
            raise DownloadError(
                f"Failed to write {local_path}: {e}",
                details={"url": url},
            ) from e
        finally:
            await response.aclose()

        logger.info(f"Downloaded {url} -> {local_path} ({total_bytes} bytes)")
        return total_bytes

    async def aclose(self) -> None:
        """Release the executor and the HTTP client if this downloader created it."""
        if self._owns_http_client:
            await self.http_client.aclose()
        self.download_executor.shutdown(wait=False)

    def _copy_object(
        self,
        object_path: str,
        local_path: PathLike,
        stop_event: Optional[threading.Event] = None,
    ) -> int:
        try:
            response = self.client.get_object(Bucket=self.store_bucket, Key=object_path)
        except (ClientError, BotoCoreError) as e:
            raise DownloadError(
                f"Failed to open {self.store_bucket}/{object_path}: {e}",
                details={"bucket": self.store_bucket, "path": object_path},
            ) from e

        body = response['Body']
        try:
            Path(local_path).parent.mkdir(parents=True, exist_ok=True)
            chunks = iter_body_chunks(body)
            if stop_event is not None:
                chunks = _until_stopped(chunks, stop_event, object_path)
            total_bytes = write_chunks(chunks, local_path)
        except (ClientError, BotoCoreError, OSError) as e:
            raise DownloadError(
                f"Failed to copy {self.store_bucket}/{object_path} to {local_path}: {e}",
                details={"bucket": self.store_bucket, "path": object_path},
            ) from e
        finally:
            body.close()

        logger.info(f"Downloaded {self.store_bucket}/{object_path} -> {local_path} ({total_bytes} bytes)")
        return total_bytes
