"""
Shared fixtures for transfer pipeline tests.

FakeS3Client stands in for a boto3 S3 client: it records every call
(without retaining part bodies, so large virtual uploads stay cheap) and can
be told to fail at specific points.
"""

import io
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pytest
from botocore.exceptions import ClientError
from botocore.response import StreamingBody

KIB = 1024
MIB = 1024 * 1024


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    """In-memory S3 client double with failure injection."""

    def __init__(self, objects: Optional[Dict[Tuple[str, str], bytes]] = None, keep_bodies: bool = True):
        self.objects: Dict[Tuple[str, str], bytes] = dict(objects or {})
        self.keep_bodies = keep_bodies
        self.calls: List[Tuple[str, Dict[str, Any]]] = []

        self.upload_id: Optional[str] = "upload-123"
        self.fail_on_part: Optional[int] = None
        self.part_error: Exception = client_error("InternalError", "UploadPart")
        self.complete_error: Optional[Exception] = None
        self.abort_error: Optional[Exception] = None
        self.head_error: Optional[Exception] = None
        self.on_upload_part = None

        self._parts: Dict[int, bytes] = {}

    # -- helpers -----------------------------------------------------------

    def _record(self, name: str, **kwargs) -> None:
        body = kwargs.pop("Body", None)
        if body is not None and hasattr(body, "__len__"):
            kwargs["BodyLength"] = len(body)
        self.calls.append((name, kwargs))

    def call_names(self) -> List[str]:
        return [name for name, _ in self.calls]

    def calls_named(self, name: str) -> List[Dict[str, Any]]:
        return [kwargs for call_name, kwargs in self.calls if call_name == name]

    # -- upload primitives -------------------------------------------------

    def put_object(self, **kwargs):
        body = kwargs["Body"]
        data = body.read() if self.keep_bodies else b""
        self._record("put_object", **kwargs)
        self.objects[(kwargs["Bucket"], kwargs["Key"])] = data
        return {"ETag": '"single-etag"'}

    def create_multipart_upload(self, **kwargs):
        self._record("create_multipart_upload", **kwargs)
        if self.upload_id is None:
            return {}
        return {"UploadId": self.upload_id}

    def upload_part(self, **kwargs):
        self._record("upload_part", **kwargs)
        part_number = kwargs["PartNumber"]
        if self.on_upload_part is not None:
            self.on_upload_part(part_number)
        if self.fail_on_part == part_number:
            raise self.part_error
        if self.keep_bodies:
            self._parts[part_number] = bytes(kwargs["Body"])
        return {"ETag": f'"etag-{part_number}"'}

    def complete_multipart_upload(self, **kwargs):
        self._record("complete_multipart_upload", **kwargs)
        if self.complete_error is not None:
            raise self.complete_error
        if self.keep_bodies:
            parts = kwargs["MultipartUpload"]["Parts"]
            data = b"".join(self._parts[p["PartNumber"]] for p in parts)
            self.objects[(kwargs["Bucket"], kwargs["Key"])] = data
        return {"ETag": '"multipart-etag"'}

    def abort_multipart_upload(self, **kwargs):
        self._record("abort_multipart_upload", **kwargs)
        if self.abort_error is not None:
            raise self.abort_error
        return {}

    # -- read primitives ---------------------------------------------------

    def get_object(self, **kwargs):
        self._record("get_object", **kwargs)
        key = (kwargs["Bucket"], kwargs["Key"])
        if key not in self.objects:
            raise client_error("NoSuchKey", "GetObject")
        data = self.objects[key]
        return {"Body": StreamingBody(io.BytesIO(data), len(data)), "ContentLength": len(data)}

    def head_object(self, **kwargs):
        self._record("head_object", **kwargs)
        if self.head_error is not None:
            raise self.head_error
        key = (kwargs["Bucket"], kwargs["Key"])
        if key not in self.objects:
            raise client_error("404", "HeadObject")
        return {"ContentLength": len(self.objects[key])}

    def generate_presigned_url(self, ClientMethod, Params=None, ExpiresIn=3600):
        self._record("generate_presigned_url", ClientMethod=ClientMethod, Params=Params, ExpiresIn=ExpiresIn)
        return f"https://signed.example.com/{Params['Bucket']}/{Params['Key']}?X-Amz-Expires={ExpiresIn}"


class StepRecorder:
    """Collects (step, metadata) pairs passed to a step log callback."""

    def __init__(self):
        self.events: List[Tuple[str, Dict[str, Any]]] = []

    def __call__(self, step: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.events.append((step, dict(metadata or {})))

    def steps(self) -> List[str]:
        return [step for step, _ in self.events]

    def named(self, step: str) -> List[Dict[str, Any]]:
        return [metadata for name, metadata in self.events if name == step]


@pytest.fixture
def fake_s3():
    return FakeS3Client()


@pytest.fixture
def step_log():
    return StepRecorder()


@pytest.fixture
def make_file(tmp_path):
    """Write a file of the given size with a repeating byte pattern."""

    def _make(size: int, name: str = "output.mp4") -> Path:
        path = tmp_path / name
        pattern = bytes(range(256))
        with open(path, "wb") as f:
            remaining = size
            while remaining > 0:
                chunk = pattern[: min(len(pattern), remaining)]
                f.write(chunk)
                remaining -= len(chunk)
        return path

    return _make


@pytest.fixture
def make_sparse_file(tmp_path):
    """Create a file of the given size without writing its bytes."""

    def _make(size: int, name: str = "large.mp4") -> Path:
        path = tmp_path / name
        with open(path, "wb") as f:
            f.truncate(size)
        return path

    return _make
