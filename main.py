import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import ConnectionFailure, PyMongoError

import database
from config import get_settings
from connections import ConnectionLedger
from errors import StoreError, StoreUnavailableError, StudyMateError
from matchmaking import RequestOrchestrator
from partners import PartnerCatalog
from schemas import ConnectionCreate, PartnerProfile, User
from users import UserDirectory


def configure_logging() -> None:
    settings = get_settings()
    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_format == "json"
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
    )


configure_logging()
logger = structlog.get_logger()
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("api_starting")
    # A failed connection leaves the API up; store-backed routes answer 503
    database.connect()

    yield

    logger.info("api_stopping")
    database.close()


app = FastAPI(title="StudyMate API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()

users = UserDirectory()
catalog = PartnerCatalog()
ledger = ConnectionLedger()
orchestrator = RequestOrchestrator(catalog, ledger)


# Errors
@app.exception_handler(StudyMateError)
async def studymate_error_handler(request: Request, exc: StudyMateError):
    if isinstance(exc, StoreError):
        logger.error("store_error", path=request.url.path, code=exc.code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(PyMongoError)
async def store_error_handler(request: Request, exc: PyMongoError):
    if isinstance(exc, ConnectionFailure):
        err = StoreUnavailableError("database is not reachable")
    else:
        err = StoreError("database operation failed")
    logger.error("store_error", path=request.url.path, code=err.code, error=str(exc)[:200])
    return JSONResponse(status_code=err.status_code, content=err.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = sorted({".".join(str(p) for p in e["loc"][1:]) or "body" for e in exc.errors()})
    return JSONResponse(
        status_code=400,
        content={"message": f"invalid or missing fields: {', '.join(fields)}", "code": "validation_error"},
    )


# Health
@router.get("/")
def read_root():
    return {"message": "StudyMate API running"}


@router.get("/health")
def health():
    return {"ok": True, "message": "Server is healthy"}


@router.get("/health/ready")
def readiness():
    if database.ping():
        return {"status": "ready", "database": "connected"}
    return JSONResponse(status_code=503, content={"status": "not_ready", "database": "unavailable"})


# Users
@router.get("/users")
def list_users():
    return users.list()


@router.post("/users")
def create_user(payload: User):
    return {"acknowledged": True, "insertedId": users.create(payload)}


@router.get("/users/{user_id}")
def get_user(user_id: str):
    return users.get_by_id(user_id)


# Partners
@router.post("/partners")
def create_partner(payload: PartnerProfile):
    return {"acknowledged": True, "insertedId": catalog.create(payload)}


@router.get("/partners")
def list_partners(search: Optional[str] = None, sort: Optional[str] = None):
    return orchestrator.discover(search=search, sort=sort)


@router.get("/partners-top")
def top_partners(limit: Optional[str] = None):
    return orchestrator.top_rated(limit)


@router.get("/partners/{partner_id}")
def get_partner(partner_id: str):
    return catalog.get_by_id(partner_id)


# Connections
@router.post("/connections")
def send_connection_request(payload: ConnectionCreate):
    return {"acknowledged": True, **orchestrator.send_request(payload)}


@router.get("/connections")
def list_connections(email: Optional[str] = None):
    return ledger.list_by_requester(email)


@router.patch("/connections/{connection_id}")
def update_connection(connection_id: str, fields: Dict[str, Any] = Body(...)):
    return {"acknowledged": True, **ledger.update_fields(connection_id, fields)}


@router.delete("/connections/{connection_id}")
def delete_connection(connection_id: str):
    return {"acknowledged": True, **ledger.delete(connection_id)}


app.include_router(router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
