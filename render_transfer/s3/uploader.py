"""
Resilient render output uploader.

Picks single-shot put_object for files below the multipart threshold and a
sequential multipart upload otherwise. Multipart uploads hold at most one
part in memory and abort the remote session on any failure so no orphaned
parts are left behind.
"""

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Optional

from render_transfer.core.exceptions import (
    MultipartUploadError,
    UploadCancelledError,
    UploadError,
)
from render_transfer.core.logging import StepLog
from render_transfer.s3.config import MAX_PARTS, MULTIPART_THRESHOLD, PART_SIZE
from render_transfer.schemas import (
    MultipartSession,
    PartPlan,
    PartRange,
    UploadResult,
    UploadSpec,
    UploadStrategy,
)

logger = logging.getLogger(__name__)


def _no_log(step: str, metadata: Optional[Dict[str, Any]] = None) -> None:
    return None


def allocate_part_buffer(size: int) -> bytearray:
    """One buffer of exactly one part's size; dropped before the next part."""
    return bytearray(size)


class ResilientUploader:
    """Uploads a local file to an S3-compatible store."""

    def __init__(
        self,
        client,
        log: Optional[StepLog] = None,
        part_size: int = PART_SIZE,
        threshold: int = MULTIPART_THRESHOLD,
    ):
        """
        Args:
            client: boto3 S3 client
            log: Step logging callback, log(step, metadata)
            part_size: Bytes per multipart part (also the peak buffer size)
            threshold: Files of this size or larger use multipart
        """
        if part_size <= 0:
            raise ValueError("part_size must be positive")

        self.client = client
        self.log = log or _no_log
        self.part_size = part_size
        self.threshold = threshold

        # Single-worker executor for async callers (one upload at a time)
        self.upload_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="s3-upload")

    def select_strategy(self, file_size: int) -> UploadStrategy:
        if file_size < self.threshold:
            return UploadStrategy.SINGLE
        return UploadStrategy.MULTIPART

    def upload(
        self,
        spec: UploadSpec,
        cancel_event: Optional[threading.Event] = None,
    ) -> UploadResult:
        """
        Upload spec.file_path to spec.bucket/spec.key.

        Args:
            spec: Upload request; file_size must match the file on disk
            cancel_event: Checked before each multipart part; when set the
                upload stops and the multipart session is aborted

        Returns:
            UploadResult describing the stored object

        Raises:
            MultipartUploadError: If the store returns no upload ID
            UploadCancelledError: If cancel_event was set mid-upload
            ClientError: Store errors, propagated unmodified
        """
        strategy = self.select_strategy(spec.file_size)
        logger.info(
            f"[UPLOAD] Starting {strategy.value} upload: {spec.bucket}/{spec.key} "
            f"({spec.file_size} bytes)"
        )

        if strategy == UploadStrategy.SINGLE:
            result = self._upload_single(spec)
        else:
            result = self._upload_multipart(spec, cancel_event)

        logger.info(f"[UPLOAD] Completed: {spec.bucket}/{spec.key}")
        return result

    async def upload_async(
        self,
        spec: UploadSpec,
        cancel_event: Optional[threading.Event] = None,
    ) -> UploadResult:
        """
        Run upload() in the dedicated executor without blocking the event loop.

        Cancelling the awaiting task sets the cancel event, so the worker
        thread stops at the next part boundary and aborts the session.
        """
        cancel_event = cancel_event or threading.Event()
        loop = asyncio.get_running_loop()
        future = loop.run_in_executor(self.upload_executor, self.upload, spec, cancel_event)
        try:
            return await asyncio.shield(future)
        except asyncio.CancelledError:
            cancel_event.set()
            logger.warning(f"[UPLOAD] Cancellation requested: {spec.bucket}/{spec.key}")
            await self._drain(spec, future)
            raise

    def close(self) -> None:
        self.upload_executor.shutdown(wait=True)

    async def _drain(self, spec: UploadSpec, future: asyncio.Future) -> None:
        """Wait out a cancelled upload's worker thread, abort included."""
        while not future.done():
            try:
                await asyncio.shield(future)
            except asyncio.CancelledError:
                # Repeated cancel; the worker still owns the session
                continue
            except Exception:
                break

        if future.cancelled():
            return
        error = future.exception()
        if error is not None and not isinstance(error, UploadCancelledError):
            logger.warning(
                f"[UPLOAD] Cancelled upload {spec.bucket}/{spec.key} ended with: {error}"
            )

    def _upload_single(self, spec: UploadSpec) -> UploadResult:
        with open(spec.file_path, 'rb') as body:
            response = self.client.put_object(
                Bucket=spec.bucket,
                Key=spec.key,
                Body=body,
                ContentLength=spec.file_size,
                ContentType=spec.content_type,
                ContentDisposition=spec.content_disposition,
            )

        return UploadResult(
            strategy=UploadStrategy.SINGLE,
            bucket=spec.bucket,
            key=spec.key,
            size_bytes=spec.file_size,
            etag=(response or {}).get('ETag'),
        )

    def _upload_multipart(
        self,
        spec: UploadSpec,
        cancel_event: Optional[threading.Event],
    ) -> UploadResult:
        plan = PartPlan(file_size=spec.file_size, part_size=self.part_size)
        total_parts = plan.total_parts

        if total_parts > MAX_PARTS:
            raise UploadError(
                f"File needs {total_parts} parts, store limit is {MAX_PARTS}",
                {"fileSize": str(spec.file_size), "partSize": str(self.part_size)},
            )

        self.log('multipart_start', {
            'fileSize': spec.file_size,
            'partSize': self.part_size,
            'totalParts': total_parts,
        })

        response = self.client.create_multipart_upload(
            Bucket=spec.bucket,
            Key=spec.key,
            ContentType=spec.content_type,
            ContentDisposition=spec.content_disposition,
        )
        upload_id = (response or {}).get('UploadId')
        if not upload_id:
            raise MultipartUploadError(
                "Failed to initiate multipart upload: no UploadId returned",
                {"bucket": spec.bucket, "key": spec.key},
            )

        session = MultipartSession(upload_id=upload_id)

        try:
            with open(spec.file_path, 'rb') as source:
                for part in plan:
                    if cancel_event is not None and cancel_event.is_set():
                        raise UploadCancelledError(
                            f"Upload cancelled before part {part.part_number}/{total_parts}"
                        )

                    etag = self._upload_part(spec, session, source, part)
                    session.record(part.part_number, etag)

                    self.log('multipart_part_uploaded', {
                        'part': part.part_number,
                        'totalParts': total_parts,
                        'partSize': part.size,
                        'pct': round(part.part_number / total_parts * 100),
                    })

                self.client.complete_multipart_upload(
                    Bucket=spec.bucket,
                    Key=spec.key,
                    UploadId=upload_id,
                    MultipartUpload=session.as_multipart_upload(),
                )

        except BaseException as e:
            self.log('multipart_abort', {'error': str(e)})
            self._abort(spec, upload_id)
            raise

        self.log('multipart_complete', {'parts': len(session.completed_parts)})

        return UploadResult(
            strategy=UploadStrategy.MULTIPART,
            bucket=spec.bucket,
            key=spec.key,
            size_bytes=spec.file_size,
            part_count=len(session.completed_parts),
        )

    def _upload_part(self, spec: UploadSpec, session: MultipartSession, source, part: PartRange) -> str:
        buffer = allocate_part_buffer(part.size)
        source.seek(part.start)
        read = source.readinto(buffer)
        if read != part.size:
            raise UploadError(
                f"Short read on part {part.part_number}: expected {part.size} bytes, got {read}",
                {"file": spec.file_path},
            )

        response = self.client.upload_part(
            Bucket=spec.bucket,
            Key=spec.key,
            UploadId=session.upload_id,
            PartNumber=part.part_number,
            Body=buffer,
            ContentLength=part.size,
        )
        return response['ETag']

    def _abort(self, spec: UploadSpec, upload_id: str) -> None:
        # Best effort: never replaces the error that triggered the abort
        try:
            self.client.abort_multipart_upload(
                Bucket=spec.bucket,
                Key=spec.key,
                UploadId=upload_id,
            )
        except Exception as abort_error:
            logger.warning(
                f"[UPLOAD] Failed to abort multipart upload {upload_id} "
                f"for {spec.bucket}/{spec.key}: {abort_error}"
            )
