# podbridge/utils/http_utils.py
import json
from typing import Any

import httpx

from podbridge.errors import UpstreamFailure


def safe_json(text: str) -> Any:
    try:
        return json.loads(text)
    except (ValueError, TypeError):
        return {"raw": text}


def response_body(resp: httpx.Response) -> Any:
    return safe_json(resp.text) if resp.content else None


def check_response(resp: httpx.Response, what: str) -> Any:
    """Decoded body of a 2xx response, otherwise UpstreamFailure carrying status + body."""
    body = response_body(resp)
    if resp.is_success:
        return body
    raise UpstreamFailure(f"{what} failed: {resp.status_code}", status_code=resp.status_code, payload=body)


async def send(client: httpx.AsyncClient, method: str, url: str, what: str, **kwargs) -> Any:
    try:
        resp = await client.request(method, url, **kwargs)
    except httpx.RequestError as e:
        raise UpstreamFailure(f"{what} failed: {e}") from e
    return check_response(resp, what)
