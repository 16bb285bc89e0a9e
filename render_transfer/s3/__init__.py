"""S3-compatible object store access: client construction and resilient uploads."""
