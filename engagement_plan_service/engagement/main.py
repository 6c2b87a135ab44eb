import logging
import os

from fastapi import FastAPI
from engagement.api.routes_engagement import router as engagement_router

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Engagement Plan Service (protocol mirror)", version="1.0")

app.include_router(engagement_router)

@app.get("/health")
def health():
    return {"ok": True}
@app.get("/")
def root():
    return {"ok": True, "service": "Engagement Plan Service (protocol mirror)"}
