from __future__ import annotations

import json
from typing import Any

from fastapi import Request


async def raw_body(request: Request) -> bytes:
    """Exact request bytes; signatures are computed over these, not over re-serialized JSON."""
    return await request.body()


def parse_json(body: bytes) -> Any:
    """Raises ValueError for anything that is not a JSON document."""
    return json.loads(body.decode("utf-8"))
