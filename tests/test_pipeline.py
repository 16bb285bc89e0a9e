"""
Tests for TransferPipeline.

Test coverage:
- Input download layout (cover + tracks)
- Idempotent publish (existing output is not re-uploaded)
- Upload headers, signed URL and completion event
- Pipeline construction from settings
"""

import httpx
import pytest
import pytest_asyncio

from conftest import KIB, FakeS3Client
from render_transfer import main as main_module
from render_transfer.core.config import Settings
from render_transfer.core.exceptions import DownloadError
from render_transfer.main import TransferPipeline, create_transfer_pipeline, render_output_key


def make_settings(**overrides) -> Settings:
    values = dict(
        R2_ENDPOINT="account.r2.cloudflarestorage.com",
        R2_ACCESS_KEY_ID="key",
        R2_SECRET_ACCESS_KEY="secret",
        R2_BUCKET_NAME="renders",
        ASSET_STORAGE_BUCKET="assets",
        SIGNED_URL_EXPIRATION=3600,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def output_s3():
    return FakeS3Client()


@pytest.fixture
def asset_s3():
    return FakeS3Client(objects={
        ("assets", "users/u1/audio/intro.wav"): b"wav-bytes",
        ("assets", "users/u1/audio/loop"): b"mp3-bytes",
    })


@pytest.fixture
def cover_handler():
    def handler(request):
        if request.url.path == "/cover.jpg":
            return httpx.Response(200, content=b"jpeg-bytes")
        return httpx.Response(404)
    return handler


@pytest_asyncio.fixture
async def pipeline(output_s3, asset_s3, cover_handler, step_log):
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(cover_handler))
    pipeline = TransferPipeline(make_settings(), output_s3, asset_s3, http_client=http_client, log=step_log)
    yield pipeline
    await pipeline.aclose()
    await http_client.aclose()


def test_render_output_key():
    assert render_output_key("abc123") == "renders/abc123.mp4"


class TestDownloadInputs:

    @pytest.mark.asyncio
    async def test_downloads_cover_and_tracks(self, pipeline, tmp_path):
        inputs = await pipeline.download_inputs(
            "https://cdn.example.com/cover.jpg",
            ["users/u1/audio/intro.wav", "users/u1/audio/loop"],
            tmp_path / "job",
        )

        assert inputs.image_path == tmp_path / "job" / "cover.jpg"
        assert inputs.image_path.read_bytes() == b"jpeg-bytes"
        assert [p.name for p in inputs.track_paths] == ["track_0.wav", "track_1.mp3"]
        assert [p.read_bytes() for p in inputs.track_paths] == [b"wav-bytes", b"mp3-bytes"]

    @pytest.mark.asyncio
    async def test_missing_cover_fails(self, pipeline, tmp_path):
        with pytest.raises(DownloadError) as exc_info:
            await pipeline.download_inputs("https://cdn.example.com/gone.jpg", [], tmp_path)

        assert exc_info.value.status_code == 404
        assert not (tmp_path / "cover.jpg").exists()


class TestPublishRender:

    @pytest.mark.asyncio
    async def test_uploads_and_signs(self, pipeline, output_s3, step_log, make_file):
        path = make_file(4 * KIB)

        result = await pipeline.publish_render("r1", path, "My Mix")

        put = output_s3.calls_named("put_object")[0]
        assert put["Bucket"] == "renders"
        assert put["Key"] == "renders/r1.mp4"
        assert put["ContentType"] == "video/mp4"
        assert put["ContentDisposition"] == 'attachment; filename="My%20Mix.mp4"'
        assert result.key == "renders/r1.mp4"
        assert result.size_bytes == 4 * KIB
        assert result.skipped is False
        assert result.download_url.endswith("X-Amz-Expires=3600")
        assert step_log.named("upload_complete") == [{"r2Key": "renders/r1.mp4", "sizeBytes": 4 * KIB}]

    @pytest.mark.asyncio
    async def test_existing_output_is_not_reuploaded(self, pipeline, output_s3, step_log, make_file):
        output_s3.objects[("renders", "renders/r1.mp4")] = b"already there"
        path = make_file(KIB)

        result = await pipeline.publish_render("r1", path, "My Mix")

        assert result.skipped is True
        assert result.download_url.startswith("https://signed.example.com/renders/renders/r1.mp4")
        assert "put_object" not in output_s3.call_names()
        assert step_log.named("idempotency_skip") == [{"r2Key": "renders/r1.mp4"}]

    @pytest.mark.asyncio
    async def test_blank_title_falls_back(self, pipeline, output_s3, make_file):
        await pipeline.publish_render("r2", make_file(KIB), "")

        put = output_s3.calls_named("put_object")[0]
        assert put["ContentDisposition"] == 'attachment; filename="Untitled.mp4"'


class TestCreateTransferPipeline:

    @pytest.mark.asyncio
    async def test_builds_clients_from_settings(self, monkeypatch):
        configured = []
        monkeypatch.setattr(
            main_module, "setup_logging",
            lambda level, json_format: configured.append((level, json_format)),
        )
        settings = make_settings(ASSET_STORAGE_REGION="us-east-1", LOG_LEVEL="DEBUG")

        pipeline = create_transfer_pipeline(settings)

        assert configured == [("DEBUG", True)]
        assert pipeline.output_store.bucket == "renders"
        assert pipeline.output_store.client.meta.endpoint_url == "https://account.r2.cloudflarestorage.com"
        assert pipeline.downloader.store_bucket == "assets"
        await pipeline.aclose()
