from __future__ import annotations

import json
from typing import Any

from fastapi import HTTPException, Request


JSON_TYPES = ("application/json",)
FORM_TYPES = ("application/x-www-form-urlencoded",)


async def parsed_body(request: Request) -> Any:
    """Decode a JSON or urlencoded form body; other content types yield ``{}``.

    Forms are flattened to ``str -> str`` (the last value wins for repeated keys).
    """

    content_type = request.headers.get("content-type", "").split(";", 1)[0].strip().lower()

    if content_type in JSON_TYPES or content_type.endswith("+json"):
        raw = await request.body()
        if not raw:
            return {}
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Malformed JSON body") from exc

    if content_type in FORM_TYPES:
        form = await request.form()
        return {key: value for key, value in form.items() if isinstance(value, str)}

    return {}
