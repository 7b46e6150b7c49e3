from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from feynman.api.ws import router as ws_router
from feynman.core.config import settings
from feynman.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="Feynman Mock Student WS API", version="0.1.0")

# CORS: the mock agent is for local development only
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health():
    return {"ok": True}


# WebSocket router
app.include_router(ws_router)
