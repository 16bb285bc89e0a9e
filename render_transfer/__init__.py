"""
Render asset transfer pipeline.
Streaming asset downloads and resilient S3 uploads for the video render worker.
"""

__version__ = "0.1.0"

from render_transfer.download.downloader import AssetDownloader
from render_transfer.s3.uploader import ResilientUploader
from render_transfer.schemas import (
    HttpRef,
    ObjectStoreRef,
    PartPlan,
    UploadResult,
    UploadSpec,
    UploadStrategy,
)

__all__ = [
    "AssetDownloader",
    "ResilientUploader",
    "HttpRef",
    "ObjectStoreRef",
    "PartPlan",
    "UploadResult",
    "UploadSpec",
    "UploadStrategy",
]
