"""Minimal JSON-over-HTTP helper shared by the embedding and LLM providers."""

from __future__ import annotations

import json
from typing import Any
from urllib.request import Request, urlopen

__all__ = ["post_json"]


def post_json(
    url: str,
    payload: dict[str, Any],
    api_key: str | None = None,
    timeout: float = 120,
) -> Any:
    """POST a JSON payload and decode the JSON response.

    Raises:
        urllib.error.HTTPError: On a non-2xx status.
        urllib.error.URLError: When the server is not reachable.
        TimeoutError: When the server does not answer within ``timeout``.
        json.JSONDecodeError: When the body is not JSON.
    """
    headers: dict[str, str] = {"Content-Type": "application/json"}
    if api_key:
        headers["Authorization"] = f"Bearer {api_key}"

    req = Request(url, data=json.dumps(payload).encode("utf-8"), headers=headers)
    with urlopen(req, timeout=timeout) as resp:
        body = resp.read()
    return json.loads(body)
