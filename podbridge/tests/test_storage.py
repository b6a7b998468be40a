import asyncio
from dataclasses import replace

import httpx
import pytest

from podbridge.artwork.storage import ProxyUploader, S3Uploader, build_uploader
from podbridge.errors import ArtworkError
from podbridge.tests.fakes import Router


class FakeS3:
    def __init__(self, fail=False):
        self.fail = fail
        self.objects = {}

    def put_object(self, **kw):
        if self.fail:
            raise RuntimeError("AccessDenied")
        self.objects[kw["Key"]] = kw


def test_s3_upload_returns_public_url():
    s3 = FakeS3()
    up = S3Uploader("art-bucket", region="eu-west-2", public_base_url="https://img.test/", client=s3)

    url = asyncio.run(up.upload("art/a__7__num-1.png", b"png"))

    assert url == "https://img.test/art/a__7__num-1.png"
    assert s3.objects["art/a__7__num-1.png"]["ContentType"] == "image/png"
    assert s3.objects["art/a__7__num-1.png"]["Bucket"] == "art-bucket"


def test_s3_public_url_fallbacks():
    assert S3Uploader("b", endpoint_url="https://r2.test/").public_url("k.png") == "https://r2.test/b/k.png"
    assert S3Uploader("b").public_url("k.png") == "https://b.s3.us-east-1.amazonaws.com/k.png"


def test_s3_failure_is_artwork_error():
    with pytest.raises(ArtworkError):
        asyncio.run(S3Uploader("b", client=FakeS3(fail=True)).upload("k.png", b"png"))


def _proxy_upload(router, token=""):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(router)) as c:
            return await ProxyUploader("https://upload.test/put", token, client=c).upload("art/x.png", b"png")
    return asyncio.run(run())


def test_proxy_upload():
    router = Router().add("POST", "/put", json_body={"url": "https://files.test/art/x.png"})

    assert _proxy_upload(router, token="t0k") == "https://files.test/art/x.png"
    sent = router.calls[0]
    assert sent.headers["authorization"] == "Bearer t0k"
    assert b'filename="x.png"' in sent.content


@pytest.mark.parametrize("router", [
    Router().add("POST", "/put", status=502),
    Router().add("POST", "/put", json_body={"ok": True}),
])
def test_proxy_failures(router):
    with pytest.raises(ArtworkError):
        _proxy_upload(router)


def test_build_uploader_prefers_s3(settings):
    assert build_uploader(settings) is None
    assert isinstance(build_uploader(replace(settings, upload_proxy_url="https://upload.test")), ProxyUploader)
    both = replace(settings, upload_proxy_url="https://upload.test", composite_s3_bucket="b")
    assert isinstance(build_uploader(both), S3Uploader)
