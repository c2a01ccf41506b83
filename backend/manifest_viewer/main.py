"""
Main FastAPI application entry point.
"""
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from manifest_viewer.api import assistant, charts, manifests, reports
from manifest_viewer.config.settings import settings
from manifest_viewer.services.manifest_client import UpstreamAPIError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

app = FastAPI(
    title="Air Cargo Manifest Viewer",
    description="Manifest proxy, aggregation, charts and assistant",
    version="1.0.0"
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(UpstreamAPIError)
async def upstream_error_handler(request: Request, exc: UpstreamAPIError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_body())


# Include routers
app.include_router(manifests.router, prefix="/api", tags=["manifests"])
app.include_router(charts.router, prefix="/api/charts", tags=["charts"])
app.include_router(assistant.router, prefix="/api/assistant", tags=["assistant"])
app.include_router(reports.router, prefix="/api/reports", tags=["reports"])


@app.get("/")
async def root():
    return {"message": "Air Cargo Manifest Viewer API"}


@app.get("/health")
async def health():
    return {"status": "healthy"}


@app.api_route("/api/{path:path}", methods=["GET", "POST"], include_in_schema=False)
async def endpoint_not_found(path: str):
    return JSONResponse(status_code=404, content={"message": "Endpoint not found."})
