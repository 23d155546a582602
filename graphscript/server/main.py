"""
graphscript HTTP API (FastAPI).

Start with:
    python -m graphscript.server.main

Or via uvicorn directly:
    uvicorn graphscript.server.main:app --port 3001 --reload
"""
from __future__ import annotations

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from graphscript import __version__
from graphscript.config import configure_logging, get_settings
from graphscript.server.routes.compile_routes import router

# Export .env into os.environ for anything that reads it outside Settings.
load_dotenv()
settings = get_settings()
configure_logging(settings)

# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(title="graphscript API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "graphscript.server.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
    )
