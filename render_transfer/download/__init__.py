"""Streaming downloads of render input assets."""

from render_transfer.download.downloader import AssetDownloader

__all__ = ["AssetDownloader"]
