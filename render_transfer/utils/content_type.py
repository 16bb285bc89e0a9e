"""
Content-Disposition and download naming utilities.
Headers for render outputs and local file names for input assets.
"""

from pathlib import Path, PurePosixPath
from typing import Union
from urllib.parse import quote

# RFC 2396 marks kept unescaped in download filenames
FILENAME_SAFE_CHARS = "!*'()"


def build_content_disposition(title: str, extension: str = ".mp4") -> str:
    """
    Attachment header that makes browsers save the render under its title.

    The title is percent-encoded so quotes and non-ASCII characters cannot
    break the header.

    Examples:
        >>> build_content_disposition("My Mix")
        'attachment; filename="My%20Mix.mp4"'

        >>> build_content_disposition('Lo-fi "beats"')
        'attachment; filename="Lo-fi%20%22beats%22.mp4"'
    """
    encoded = quote(title, safe=FILENAME_SAFE_CHARS)
    return f'attachment; filename="{encoded}{extension}"'


def local_asset_path(
    work_dir: Union[str, Path],
    stem: str,
    object_path: str,
    default_ext: str = ".mp3",
) -> Path:
    """
    Local destination for a downloaded asset, keeping the source extension.

    Examples:
        >>> local_asset_path("/tmp/render", "track_0", "users/u1/audio/song.wav").name
        'track_0.wav'

        >>> local_asset_path("/tmp/render", "track_1", "users/u1/audio/noext").name
        'track_1.mp3'
    """
    ext = PurePosixPath(object_path).suffix or default_ext
    return Path(work_dir) / f"{stem}{ext}"
