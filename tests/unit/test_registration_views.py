import io
import pytest
from starlette.datastructures import Headers, UploadFile
from portal.registration.views import _attachment

def _upload(content: bytes, size=None) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        size=size,
        filename="civil-id.png",
        headers=Headers({"content-type": "image/png"}),
    )

@pytest.mark.asyncio
async def test_attachment_uses_known_size_without_reading():
    upload = _upload(b"x" * 5000, size=5000)
    att = await _attachment(upload, limit=1000)
    assert att.size == 5000
    assert att.content_type == "image/png"
    assert upload.file.tell() == 0

@pytest.mark.asyncio
async def test_attachment_measurement_stops_past_limit():
    upload = _upload(b"x" * 5000)
    att = await _attachment(upload, limit=1000, chunk_size=100)
    assert att.size > 1000
    assert upload.file.tell() < 5000

@pytest.mark.asyncio
async def test_attachment_small_file_is_measured_fully():
    att = await _attachment(_upload(b"x" * 300), limit=1000, chunk_size=100)
    assert att.size == 300

@pytest.mark.asyncio
async def test_missing_attachment():
    assert await _attachment(None) is None
    assert await _attachment(UploadFile(file=io.BytesIO(b""), filename="")) is None
