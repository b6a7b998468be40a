# podbridge/artwork/storage.py
# =============================
# Where generated composites go.
# - S3-compatible bucket when COMPOSITE_S3_BUCKET is set
# - otherwise an HTTP upload proxy (UPLOAD_PROXY_URL)
# Both return a public URL for the stored object.
# =============================

import asyncio
import logging
from typing import Optional

import boto3
import httpx

from podbridge.config import Settings
from podbridge.errors import ArtworkError, UpstreamFailure
from podbridge.utils.http_utils import check_response

logger = logging.getLogger(__name__)


class S3Uploader:
    def __init__(
        self,
        bucket: str,
        region: str = "",
        endpoint_url: str = "",
        public_base_url: str = "",
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.public_base_url = public_base_url.rstrip("/")
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                region_name=self.region or None,
                endpoint_url=self.endpoint_url or None,
            )
        return self._client

    def public_url(self, key: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{key}"
        if self.endpoint_url:
            return f"{self.endpoint_url.rstrip('/')}/{self.bucket}/{key}"
        region = self.region or "us-east-1"
        return f"https://{self.bucket}.s3.{region}.amazonaws.com/{key}"

    def _put(self, key: str, data: bytes, content_type: str):
        self.client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType=content_type,
            CacheControl="public, max-age=31536000, immutable",
        )

    async def upload(self, key: str, data: bytes, content_type: str = "image/png") -> str:
        try:
            await asyncio.to_thread(self._put, key, data, content_type)
        except Exception as e:
            raise ArtworkError(f"S3 upload of {key} failed: {e}") from e
        url = self.public_url(key)
        logger.info("[artwork] Stored composite s3://%s/%s", self.bucket, key)
        return url


class ProxyUploader:
    """POSTs the file to an upload endpoint that answers {"url": "..."}."""

    def __init__(self, endpoint: str, token: str = "", client: Optional[httpx.AsyncClient] = None):
        self.endpoint = endpoint
        self.token = token
        self._client = client

    async def _post(self, client: httpx.AsyncClient, key: str, data: bytes, content_type: str) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        filename = key.rsplit("/", 1)[-1]
        return await client.post(
            self.endpoint,
            headers=headers,
            data={"path": key},
            files={"file": (filename, data, content_type)},
        )

    async def upload(self, key: str, data: bytes, content_type: str = "image/png") -> str:
        try:
            if self._client is not None:
                resp = await self._post(self._client, key, data, content_type)
            else:
                async with httpx.AsyncClient(timeout=60.0) as client:
                    resp = await self._post(client, key, data, content_type)
            body = check_response(resp, "Upload proxy")
        except (httpx.RequestError, UpstreamFailure) as e:
            raise ArtworkError(f"Upload proxy failed for {key}: {e}") from e

        url = (body or {}).get("url") if isinstance(body, dict) else None
        if not url:
            raise ArtworkError(f"Upload proxy returned no url for {key}")
        logger.info("[artwork] Stored composite via proxy %s", url)
        return url


def build_uploader(settings: Settings):
    if settings.composite_s3_bucket:
        return S3Uploader(
            bucket=settings.composite_s3_bucket,
            region=settings.composite_s3_region,
            endpoint_url=settings.composite_s3_endpoint,
            public_base_url=settings.composite_public_base_url,
        )
    if settings.upload_proxy_url:
        return ProxyUploader(settings.upload_proxy_url, settings.upload_proxy_token)
    return None
