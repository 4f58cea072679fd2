# backend/api/main.py
from __future__ import annotations

import os
import logging

# --- Load .env early so os.getenv works everywhere ---
from dotenv import load_dotenv

load_dotenv()  # loads backend/api/.env if present

from fastapi import FastAPI  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from starlette.responses import RedirectResponse  # noqa: E402

from routes.educational import router as educational_router  # noqa: E402
from routes.emergency import router as emergency_router  # noqa: E402
from routes.graphs import router as graphs_router  # noqa: E402
from routes.map import router as map_router  # noqa: E402

log = logging.getLogger("uvicorn.error")

# Optional global API prefix (e.g., "/api")
_API_PREFIX = os.getenv("API_PREFIX", "").strip()
if _API_PREFIX:
    if not _API_PREFIX.startswith("/"):
        _API_PREFIX = "/" + _API_PREFIX
    # avoid trailing slash so paths look like /api/map (not //map)
    _API_PREFIX = _API_PREFIX.rstrip("/")

app = FastAPI(
    title="StreetSafe API",
    version="1.0.0",
    description="Crime aggregates, trends, nearest emergency services and tailored safety resources.",
)

# ---------------- CORS ----------------
# Prefer explicit origins via CORS_ORIGINS="https://app.example.com,https://staging.example.com"
# For local dev we allow any localhost/127.0.0.1 on any port.
cors_env = os.getenv("CORS_ORIGINS")
cors_kwargs = dict(allow_methods=["*"], allow_headers=["*"])

if cors_env:
    allow_origins = [o.strip() for o in cors_env.split(",") if o.strip()]
    cors_kwargs.update(allow_origins=allow_origins, allow_credentials=True)
else:
    cors_kwargs.update(
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
    )

app.add_middleware(CORSMiddleware, **cors_kwargs)
log.info("CORS configured: %s", cors_kwargs)

# ---------------- Routers ----------------
# Each router carries its own prefix (/map, /graphs, ...); _API_PREFIX goes in front.
for _router in (map_router, graphs_router, emergency_router, educational_router):
    app.include_router(_router, prefix=_API_PREFIX)


# ---------------- Meta/utility ----------------
@app.get("/", include_in_schema=False)
def root() -> RedirectResponse:
    # Visiting the root opens Swagger UI
    return RedirectResponse(url="/docs")


@app.get(f"{_API_PREFIX or ''}/health", tags=["meta"])
def health():
    return {"status": "ok", "prefix": _API_PREFIX or ""}


# ---------------- Local dev entrypoint ----------------
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
    )
