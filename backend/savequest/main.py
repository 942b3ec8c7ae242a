import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .database import dispose_engine, init_db
from .errors import ChallengeError
from .routers import challenges, plaid, transactions, user_challenges, users
from .schemas import ErrorResponse, HealthResponse
from .services.plaid_client import PlaidClient

VERSION = "0.1.0"

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # ── Startup ───────────────────────────────────────────────────────────────
    # Migrations run before the catalog is seeded.
    init_db()
    app.state.plaid = PlaidClient()
    logger.info("SaveQuest API started (plaid env=%s)", config.PLAID_ENV)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────────
    app.state.plaid.close()
    dispose_engine()


app = FastAPI(
    title="SaveQuest API",
    description="Spending challenges graded against a user's own bank transactions.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _error(status_code: int, message: str, challenge_failed=None) -> JSONResponse:
    body = ErrorResponse(message=message, challenge_failed=challenge_failed)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.exception_handler(ChallengeError)
async def challenge_error_handler(_request: Request, exc: ChallengeError):
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    return _error(exc.status_code, exc.message, exc.extra.get("challenge_failed"))


@app.exception_handler(HTTPException)
async def http_error_handler(_request: Request, exc: HTTPException):
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(_request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:])
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return _error(400, message)


app.include_router(user_challenges.router)
app.include_router(challenges.router)
app.include_router(transactions.router)
app.include_router(plaid.router)
app.include_router(users.router)


@app.get("/health", response_model=HealthResponse, tags=["meta"])
def health():
    return {"status": "ok", "version": VERSION}
