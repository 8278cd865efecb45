"""Liveness and version endpoints."""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

from efshub import __version__

router = APIRouter(tags=["system"])


@router.get("/ping", response_class=PlainTextResponse)
async def ping() -> str:
    return "pong"


@router.get("/version")
async def version() -> dict:
    return {"version": __version__}
