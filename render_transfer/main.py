"""
Render Transfer Pipeline - wiring and publish flow.
Builds the object store clients once at startup and hands them to the
asset downloader and the resilient uploader.
"""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import httpx

from render_transfer.core.config import Settings
from render_transfer.core.logging import StepLog, setup_logging
from render_transfer.download.downloader import AssetDownloader
from render_transfer.s3.client import S3Client, create_s3_client
from render_transfer.s3.uploader import ResilientUploader
from render_transfer.schemas import HttpRef, ObjectStoreRef, PublishResult, UploadSpec
from render_transfer.utils.content_type import build_content_disposition, local_asset_path

logger = logging.getLogger(__name__)

RENDER_CONTENT_TYPE = "video/mp4"
COVER_FILENAME = "cover.jpg"


@dataclass
class RenderInputs:
    """Local copies of a render job's inputs."""
    image_path: Path
    track_paths: List[Path]


def render_output_key(render_id: str) -> str:
    """Object key of a finished render in the output bucket."""
    return f"renders/{render_id}.mp4"


class TransferPipeline:
    """Downloader, uploader and output store sharing one set of clients."""

    def __init__(
        self,
        settings: Settings,
        output_client,
        asset_client,
        http_client: Optional[httpx.AsyncClient] = None,
        log: Optional[StepLog] = None,
    ):
        self.settings = settings
        self.output_store = S3Client(output_client, settings.R2_BUCKET_NAME)
        self.uploader = ResilientUploader(output_client, log=log)
        self.downloader = AssetDownloader(
            asset_client,
            store_bucket=settings.ASSET_STORAGE_BUCKET,
            http_client=http_client,
        )
        self.log = self.uploader.log

    async def download_inputs(
        self,
        image_url: str,
        track_paths: Sequence[str],
        work_dir: Union[str, Path],
    ) -> RenderInputs:
        """
        Fetch the cover image and every audio track into work_dir.

        Tracks land in track_{i}{ext}, keeping each object's extension.
        """
        work_dir = Path(work_dir)
        work_dir.mkdir(parents=True, exist_ok=True)

        image_path = work_dir / COVER_FILENAME
        local_tracks = [
            local_asset_path(work_dir, f"track_{i}", object_path)
            for i, object_path in enumerate(track_paths)
        ]

        items = [(HttpRef(url=image_url), image_path)]
        items += [
            (ObjectStoreRef(path=object_path), local_path)
            for object_path, local_path in zip(track_paths, local_tracks)
        ]
        await self.downloader.download_all(items)

        return RenderInputs(image_path=image_path, track_paths=local_tracks)

    async def publish_render(
        self,
        render_id: str,
        file_path: Union[str, Path],
        title: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> PublishResult:
        """
        Upload a finished render and return a signed download URL.

        An output already stored under the render's key is not uploaded
        again, so a retried job finishes without re-sending the file.

        Args:
            render_id: Render job identifier (names the object key)
            file_path: Local render output
            title: Video title used for the download filename
            cancel_event: Set to stop a multipart upload at the next part

        Returns:
            PublishResult with key, signed URL and size
        """
        key = render_output_key(render_id)
        loop = asyncio.get_running_loop()

        if await loop.run_in_executor(None, self.output_store.file_exists, key):
            self.log('idempotency_skip', {'r2Key': key})
            url = await loop.run_in_executor(None, self._signed_url, key)
            return PublishResult(key=key, download_url=url, skipped=True)

        file_size = os.stat(file_path).st_size
        spec = UploadSpec(
            bucket=self.settings.R2_BUCKET_NAME,
            key=key,
            file_path=str(file_path),
            file_size=file_size,
            content_type=RENDER_CONTENT_TYPE,
            content_disposition=build_content_disposition(title or "Untitled"),
        )

        await self.uploader.upload_async(spec, cancel_event)

        url = await loop.run_in_executor(None, self._signed_url, key)
        self.log('upload_complete', {'r2Key': key, 'sizeBytes': file_size})

        return PublishResult(key=key, download_url=url, size_bytes=file_size)

    async def aclose(self) -> None:
        await self.downloader.aclose()
        self.uploader.close()

    def _signed_url(self, key: str) -> str:
        return self.output_store.download_url(
            key, expires_in=self.settings.SIGNED_URL_EXPIRATION
        )


def create_transfer_pipeline(
    settings: Optional[Settings] = None,
    log: Optional[StepLog] = None,
) -> TransferPipeline:
    """
    Build the pipeline from environment settings.

    Args:
        settings: Loaded settings (None = read from environment)
        log: Step logging callback for upload events

    Returns:
        TransferPipeline ready for downloads and uploads
    """
    settings = settings or Settings()
    setup_logging(settings.LOG_LEVEL, json_format=settings.LOG_JSON)

    output_client = create_s3_client(
        endpoint_url=settings.R2_ENDPOINT,
        access_key_id=settings.R2_ACCESS_KEY_ID,
        secret_access_key=settings.R2_SECRET_ACCESS_KEY,
        region=settings.R2_REGION,
    )
    asset_client = create_s3_client(
        endpoint_url=settings.ASSET_STORAGE_ENDPOINT,
        access_key_id=settings.ASSET_STORAGE_ACCESS_KEY_ID,
        secret_access_key=settings.ASSET_STORAGE_SECRET_ACCESS_KEY,
        region=settings.ASSET_STORAGE_REGION,
    )

    logger.info("Render transfer pipeline initialized")
    return TransferPipeline(settings, output_client, asset_client, log=log)
