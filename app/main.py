from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import uvicorn
import logging

from app.storage.dynamodb import DynamoDBService
from app.storage.s3 import S3Service
from app.settings import settings
from app.routers.variants import router as variants_router
from app.routers.signing_keys import router as signing_keys_router
from app.routers.image_service import router as image_router
from app.routers.images_v2 import router as images_v2_router
from app.routers.delivery import router as delivery_router
from app.middleware.request_logging import RequestLoggingMiddleware
from app.exceptions import add_exception_handlers

logging.basicConfig(level=settings.log_level)
log = logging.getLogger("image-service")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
        Async context manager for FastAPI application lifecycle events.
        Initializes and closes resources (S3, DynamoDB) for the application.
    """
    # Initialize resources
    app.state.s3 = S3Service()
    app.state.db = DynamoDBService()
    log.info("Signed URL enforcement %s", "enabled" if settings.enforce_signed_urls else "disabled")
    yield
    # Cleanup resources
    app.state.s3.close()
    app.state.db.close()

# Initialize App
app = FastAPI(
    title=settings.app_title,
    lifespan=lifespan,
    description="Local image storage, variant transformation and signed delivery",
)

# Add exception handlers
add_exception_handlers(app)

# Middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=['*'],
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Length", "Content-Type"],
    max_age=300,
)

# Add the routers; fixed /v1 sub-paths must precede /v1/{image_id}
app.include_router(variants_router)
app.include_router(signing_keys_router)
app.include_router(image_router)
app.include_router(images_v2_router)
app.include_router(delivery_router)

# Check Health
@app.get("/health")
def health():
    """
        Liveness probe, no auth required.
    """
    return {"status": "ok"}

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8080, reload=True)
