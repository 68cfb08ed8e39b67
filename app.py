from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from visionpolish import storage
from visionpolish.config import CORS_ALLOWED_ORIGINS, ENVIRONMENT
from visionpolish.database import init_db
from visionpolish.errors import VisionPolishError, visionpolish_error_handler
from visionpolish.logger import logger
from visionpolish.ratelimit import limiter
from visionpolish.routers import admin, auth, cart, catalog, editor, orders, uploads

init_db()

app = FastAPI(title="VisionPolish")

# Add rate limiter to app
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(VisionPolishError, visionpolish_error_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=False if ENVIRONMENT == "preview" else True,  # Can't use credentials with allow_origins=["*"]
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(catalog.router)
app.include_router(cart.router)
app.include_router(uploads.router)
app.include_router(orders.router)
app.include_router(editor.router)
app.include_router(admin.router)

@app.on_event("startup")
def startup_event():
    try:
        storage.create_bucket_if_not_exists()
    except Exception as e:
        logger.error(f"Object storage is not reachable at startup: {e}")
    logger.info(f"Startup complete ({ENVIRONMENT})")

@app.get("/health")
@app.head("/health")
def health_check():
    """Health check endpoint for monitoring and load balancers"""
    return {"status": "ok", "message": "Service is running"}
