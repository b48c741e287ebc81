"""FastAPI dependency injection — auth guard, engine services, error mapping."""
import logging
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError

from panelops.config import JWT_ALGORITHM, JWT_ORG_CLAIM, JWT_SECRET_KEY, LEARNING_BACKEND
from panelops.errors import (
    DuplicateCodeError,
    EntryNotFound,
    ImmutableDefaultError,
    InvalidNotationShape,
    OperationsError,
    StorageFailure,
)
from panelops.models.resolution import LEARNING_EVENTS
from panelops.services.dialect_resolver import DialectResolver
from panelops.services.learning_writer import LearningWriter
from panelops.services.logging_config import organization_id_var
from panelops.services.operations_library import OperationsLibrary
from panelops.services.resolution_pipeline import ResolutionPipeline

logger = logging.getLogger("panelops-api")

security = HTTPBearer(auto_error=False)


async def get_organization_id(credentials: HTTPAuthorizationCredentials = Depends(security)) -> str:
    """Organization id from the bearer token's org claim; also tagged onto log records for the request."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    organization_id = payload.get(JWT_ORG_CLAIM)
    if not organization_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token carries no organization")
    organization_id_var.set(str(organization_id))
    return str(organization_id)


def get_pipeline(request: Request) -> ResolutionPipeline:
    return request.app.state.pipeline


def get_library(request: Request) -> OperationsLibrary:
    return request.app.state.library


def get_dialects(request: Request) -> DialectResolver:
    return request.app.state.dialects


def get_learning_writer(request: Request) -> LearningWriter:
    return request.app.state.learning_writer


_STATUS_BY_ERROR = (
    (ImmutableDefaultError, status.HTTP_403_FORBIDDEN),
    (EntryNotFound, status.HTTP_404_NOT_FOUND),
    (DuplicateCodeError, status.HTTP_409_CONFLICT),
    (InvalidNotationShape, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (StorageFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: OperationsError) -> HTTPException:
    """HTTPException for an engine error."""
    for error_type, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


async def dispatch_learning(events: list, writer: LearningWriter) -> str:
    """Hand learning events to the single writer: inline, or via the Celery learning queue."""
    if not events:
        return "none"
    if LEARNING_BACKEND == "celery":
        from panelops.workers.tasks import apply_learning_events
        apply_learning_events.delay(LEARNING_EVENTS.dump_python(events, mode="json"))
        return "queued"
    await writer.apply(events)
    return "applied"
