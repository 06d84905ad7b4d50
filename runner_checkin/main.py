# main.py

import logging
import logging.config
import os
import pathlib
from dotenv import load_dotenv

# ─── 1) Load .env before ANYTHING else that reads environment vars ───
env_path = pathlib.Path(__file__).parent / ".env"
if not env_path.exists():
    env_path = pathlib.Path(__file__).parent.parent / ".env"

if env_path.exists():
    logging.basicConfig(level=logging.INFO)
    logging.getLogger(__name__).info(f"Loading .env from {env_path}")
    load_dotenv(dotenv_path=env_path)
else:
    logging.basicConfig(level=logging.WARNING)
    logging.getLogger(__name__).warning(".env not found; expecting system env vars")

# ─── 2) Now safe to import modules that use DATABASE_URL ➔ runner_checkin.database ───
from fastapi import FastAPI, Request, status, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from runner_checkin.database import engine
from runner_checkin import models
from runner_checkin.routes import auth, users, events, participants, checkin, stats, images

# ─── 3) Validate required env vars ───
required_env_vars = [
    'CF_ACCESS_KEY_ID',
    'CF_SECRET_ACCESS_KEY',
    'CLOUDFLARE_R2_BUCKET',
    'CLOUDFLARE_R2_ENDPOINT',
    'DATABASE_URL',
]
missing = [v for v in required_env_vars if not os.getenv(v)]
if missing:
    raise RuntimeError(f"Missing required environment variables: {', '.join(missing)}")

# ─── 4) Create and configure FastAPI ───
logger = logging.getLogger(__name__)
app = FastAPI(title="Runner Check-in API")

allowed_origins = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",") if o.strip()]

# Add CORS middleware BEFORE routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-App-Version", "X-Timestamp"],
)

# ─── 5) Exception handlers keep CORS headers on error responses ───
CORS_HEADERS = {
    "Access-Control-Allow-Origin": allowed_origins[0] if len(allowed_origins) == 1 else "*",
    "Access-Control-Allow-Credentials": "true",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers={**CORS_HEADERS, **(exc.headers or {})}
    )

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": jsonable_errors(exc)},
        headers=CORS_HEADERS
    )

@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
        headers=CORS_HEADERS
    )

def jsonable_errors(exc: RequestValidationError):
    # Form validation errors can carry raw bytes of uploaded files in "input"
    return jsonable_encoder([{k: v for k, v in error.items() if k != "input"} for error in exc.errors()])

# ─── 6) Mount routers ───
for router in (auth, users, events, participants, checkin, stats, images):
    app.include_router(router.router)

# ─── 7) Initialize DB ───
try:
    models.Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")
except Exception as e:
    logger.error(f"Error creating database tables: {e}")
    raise

@app.get("/")
def home():
    return {"message": "Welcome to the Runner Check-in API"}
