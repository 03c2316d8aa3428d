"""API 服務入口點。"""

from __future__ import annotations

from fastapi import FastAPI

from api.wire.routes import router as wire_router

app = FastAPI(title="wiretrace API")
app.include_router(wire_router)
