import logging

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from scanguard.api.routes.scan import router as scan_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="ScanGuard API",
    description="Malware scanning for stored files",
    version="1.0.0",
    docs_url="/v1/docs",
    openapi_url="/v1/openapi.json",
)

app.include_router(scan_router)


@app.get("/healthz", tags=["health"])
def health_check() -> JSONResponse:
    return JSONResponse({"status": "ok"})
