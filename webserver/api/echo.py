from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from webserver.api.body import parsed_body


router = APIRouter(tags=["echo"])


@router.post("/echo")
async def echo(body: Any = Depends(parsed_body)) -> dict[str, Any]:
    return {"body": body}
