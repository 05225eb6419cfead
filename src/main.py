import logging
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from src.auth.decisions import CONFIGURATION_ERROR_MESSAGE, AccessDecisionError
from src.auth.dependencies import get_access_policy
from src.auth.permissions import PermissionConfigurationError
from src.auth.route_policies import ensure_route_policies_valid
from src.config import settings
from src.observability import log_event
from src.routers import (
    access,
    auth_routes,
    super_admin,
)

# Fail at startup, not on the first request, when the route table names an unknown group.
ensure_route_policies_valid(get_access_policy().catalog)

app = FastAPI(title="Hospital Access Control", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = (
        request.headers.get("X-Request-ID")
        or request.headers.get("X-Correlation-ID")
        or str(uuid4())
    )
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(AccessDecisionError)
async def access_decision_error_handler(request: Request, exc: AccessDecisionError):
    decision = exc.decision
    headers = {"WWW-Authenticate": "Bearer"} if decision.status_code == 401 else None
    return JSONResponse(
        status_code=decision.status_code,
        content=decision.error_body(),
        headers=headers,
    )


@app.exception_handler(PermissionConfigurationError)
async def permission_configuration_error_handler(request: Request, exc: PermissionConfigurationError):
    log_event(
        "access_configuration_error",
        level=logging.ERROR,
        request_id=getattr(request.state, "request_id", None),
        path=request.url.path,
        error=str(exc),
    )
    return JSONResponse(
        status_code=500,
        content={"errors": [{"message": CONFIGURATION_ERROR_MESSAGE}]},
    )


app.include_router(auth_routes.router)
app.include_router(access.router)
app.include_router(super_admin.router)


@app.get("/")
async def root():
    return {"status": "ok", "service": settings.service_name}


@app.get("/health")
async def health():
    return {"status": "healthy"}
