"""
S3 Transfer Configuration.
Constants for upload strategy selection, multipart sizing and streaming.
"""

# Multipart Upload Settings
MULTIPART_THRESHOLD = 100 * 1024 * 1024  # 100MB (files at or above go multipart)
PART_SIZE = 100 * 1024 * 1024            # 100MB per part (bounds peak buffer memory)
MAX_PARTS = 10000                         # S3/R2 hard limit on parts per upload

# Streaming Settings
READ_CHUNK_SIZE = 256 * 1024             # 256KB read/write chunk for downloads

# Download Settings
# Bounds connect + response headers only; body transfer is not time-limited.
DOWNLOAD_TIMEOUT_SECONDS = 30.0

# Signed URL Settings
DEFAULT_SIGNED_URL_EXPIRATION = 86400    # 24 hours (matches bucket lifecycle policy)
