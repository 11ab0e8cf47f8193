"""
api/app.py

FastAPI plugin server: exposes the azurerm adapters to a host engine.

Endpoints:
  GET  /healthz                          — liveness probe (no auth needed)
  POST /configure                        — authenticate, build the session registry
  GET  /schema                           — every resource / data source schema
  GET  /schema/{type}                    — one schema
  POST /resources/{type}/validate        — config check, zero cloud calls
  POST /resources/{type}/create          — async create  → 202 + job_id
  POST /resources/{type}/read            — async refresh → 202 + job_id
  POST /resources/{type}/update          — async update  → 202 + job_id
  POST /resources/{type}/delete          — async delete  → 202 + job_id
  POST /resources/{type}/import          — async import  → 202 + job_id
  POST /data/{type}/read                 — async data source read → 202 + job_id
  POST /stop                             — cancel every in-flight wait
  GET  /jobs                             — list all jobs
  GET  /jobs/{job_id}                    — full job detail (logs + status + state)
  WS   /ws/{job_id}                      — live log streaming over WebSocket

Design decisions:
  - Adapter calls block until the remote operation is terminal, so every
    remote operation runs on a background thread and returns 202 at once.
  - Config validation happens in the request, before any job is launched:
    a rejected config never costs a network call.
  - The server holds no resource state; the host sends {config, id,
    attributes} and gets the new state back in the job result.
"""

import asyncio
import dataclasses
import json
import logging
import os
import queue
from typing import Dict, List

from fastapi import Depends, FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

import azurerm
from azurerm.config import ClientRegistry, Credentials, build_client_registry
from azurerm.exceptions import ConfigError, NotFoundError, ValidationError
from azurerm.polling import DEFAULT_POLL_INTERVAL
from azurerm.resources import DataSource, ResourceAdapter, ResourceData
from api.jobs import CAPTURED_LOGGER, job_store, launch_job
from api.middleware import _get_client_ip, require_api_key, write_audit
from api.schemas import (
    ConfigureRequest,
    ConfigureResponse,
    ImportRequest,
    JobDetailResponse,
    JobResponse,
    JobStatus,
    Operation,
    ResourceRequest,
    SchemaResponse,
    ValidateResponse,
)
from api.session import session

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

app = FastAPI(
    title="AzureRM Plugin API",
    description=(
        "REST + WebSocket API exposing Azure Resource Manager resource "
        "adapters to a declarative infrastructure engine.\n\n"
        "**Configure, stop and remote-operation endpoints require the `X-API-Key` header.**"
    ),
    version=azurerm.__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)

_raw_origins = os.getenv("ALLOWED_ORIGINS", "*")
_allowed_origins = (
    [o.strip() for o in _raw_origins.split(",") if o.strip()]
    if _raw_origins != "*"
    else ["*"]
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_allowed_origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "X-API-Key"],
)

# Job threads capture INFO milestones from the adapters
if logging.getLogger(CAPTURED_LOGGER).level == logging.NOTSET:
    logging.getLogger(CAPTURED_LOGGER).setLevel(logging.INFO)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _poll_interval() -> float:
    return float(os.getenv("ARM_POLL_INTERVAL", DEFAULT_POLL_INTERVAL))


def _resource(type_name: str) -> ResourceAdapter:
    try:
        return azurerm.get_resource(type_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _data_source(type_name: str) -> DataSource:
    try:
        return azurerm.get_data_source(type_name)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _registry() -> ClientRegistry:
    registry = session.registry
    if registry is None:
        raise HTTPException(status_code=409, detail="Provider is not configured. Run POST /configure first.")
    return registry


def _check_config(adapter, config: dict) -> None:
    try:
        adapter.validate(config)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail={"message": str(e).splitlines()[0], "errors": e.errors})


def _job_response(job) -> JobResponse:
    return JobResponse(job_id=job.job_id, status=job.status, message=job.message)


def _job_detail(job) -> JobDetailResponse:
    return JobDetailResponse(
        job_id=job.job_id,
        status=job.status,
        message=job.message,
        logs=job.logs,
        error=job.error,
        result=job.result,
    )


def _perform(adapter: ResourceAdapter, operation: Operation, d: ResourceData,
             registry: ClientRegistry, log=print) -> dict:
    """Job body for the CRUD endpoints. Returns the resulting state."""
    if operation is Operation.DELETE:
        try:
            adapter.delete(d, registry)
        except NotFoundError:
            log(f"{adapter.type_name} {d.id} was already deleted")
            d.set_id("")
    elif operation is Operation.READ:
        if not adapter.read(d, registry):
            log(f"{adapter.type_name} no longer exists; removed from state")
    elif operation is Operation.CREATE:
        adapter.create(d, registry)
    else:
        adapter.update(d, registry)
    return d.to_state()


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/healthz", tags=["Meta"], summary="Liveness probe")
def healthz():
    return {"status": "ok", "configured": session.registry is not None}


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------

@app.post(
    "/configure",
    response_model=ConfigureResponse,
    tags=["Session"],
    summary="Authenticate and build every service client",
    dependencies=[Depends(require_api_key)],
)
def configure(req: ConfigureRequest, request: Request):
    """
    Fields missing from the body fall back to the ARM_* environment.
    Fails with 400 on an unknown environment, a rejected tenant, or a
    failed token exchange; the previous session (if any) is kept.
    """
    overrides = {
        k: v for k, v in req.model_dump(exclude={"host_version"}).items() if v is not None
    }
    credentials = dataclasses.replace(Credentials.from_env(), **overrides)
    write_audit(
        "CONFIGURE", _get_client_ip(request),
        f"subscription={credentials.subscription_id} environment={credentials.environment}",
    )

    try:
        registry = build_client_registry(
            credentials, host_version=req.host_version, poll_interval=_poll_interval(),
        )
    except ConfigError as e:
        raise HTTPException(status_code=400, detail=str(e))

    session.configure(registry)
    return ConfigureResponse(
        environment=registry.environment.name,
        subscription_id=registry.subscription_id,
        tenant_id=registry.tenant_id,
        families=sorted(registry),
    )


@app.post(
    "/stop",
    tags=["Session"],
    summary="Cancel every in-flight long-running wait",
    dependencies=[Depends(require_api_key)],
)
def stop(request: Request):
    """
    In-flight jobs fail promptly with 'cancelled'. The session stays
    cancelled until the next POST /configure.
    """
    write_audit("STOP", _get_client_ip(request))
    return {"stopped": session.stop()}


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

@app.get("/schema", tags=["Schema"], summary="Schemas for every supported type")
def all_schemas() -> Dict[str, Dict[str, dict]]:
    return {
        "resources": {name: azurerm.get_resource(name).schema() for name in azurerm.resource_types()},
        "data_sources": {name: azurerm.get_data_source(name).schema() for name in azurerm.data_source_types()},
    }


@app.get("/schema/{type_name}", response_model=SchemaResponse, tags=["Schema"], summary="Schema for one type")
def one_schema(type_name: str):
    if type_name.lower() in azurerm.data_source_types():
        return SchemaResponse(type_name=type_name, kind="data_source", fields=_data_source(type_name).schema())
    return SchemaResponse(type_name=type_name, kind="resource", fields=_resource(type_name).schema())


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

@app.post(
    "/resources/{type_name}/validate",
    response_model=ValidateResponse,
    tags=["Resources"],
    summary="Validate a config without any cloud calls",
)
def validate_resource(type_name: str, req: ResourceRequest):
    adapter = _resource(type_name)
    try:
        adapter.validate(req.config)
    except ValidationError as e:
        return ValidateResponse(valid=False, errors=e.errors or [str(e)])
    return ValidateResponse(valid=True)


@app.post(
    "/resources/{type_name}/import",
    response_model=JobResponse,
    status_code=202,
    tags=["Resources"],
    summary="Adopt an existing remote object (async)",
    dependencies=[Depends(require_api_key)],
)
def import_resource(type_name: str, req: ImportRequest, request: Request):
    adapter = _resource(type_name)
    try:
        adapter.parse_id(req.id)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    registry = _registry()

    write_audit("IMPORT", _get_client_ip(request), f"{adapter.type_name} {req.id}")

    def _import(log=print):
        return adapter.import_state(req.id, registry).to_state()

    job = launch_job(f"import {adapter.type_name}", _import, caller_ip=_get_client_ip(request))
    return _job_response(job)


@app.post(
    "/resources/{type_name}/{operation}",
    response_model=JobResponse,
    status_code=202,
    tags=["Resources"],
    summary="Create, read, update or delete one resource (async)",
    dependencies=[Depends(require_api_key)],
)
def resource_operation(type_name: str, operation: Operation, req: ResourceRequest, request: Request):
    """
    Returns immediately with a `job_id`. On success the job's `result`
    holds the new state ({type, id, config, attributes, status}).
    """
    adapter = _resource(type_name)
    if operation in (Operation.CREATE, Operation.UPDATE):
        _check_config(adapter, req.config)
    if operation is not Operation.CREATE and not req.id:
        raise HTTPException(status_code=400, detail=f"{operation.value} requires the resource id")
    registry = _registry()

    d = adapter.new_data(req.config, id=req.id)
    if req.attributes:
        d.refresh(req.attributes, adapter.ignore_case_paths())

    caller_ip = _get_client_ip(request)
    write_audit(operation.value, caller_ip, f"{adapter.type_name} {req.id}".strip())
    job = launch_job(
        f"{operation.value} {adapter.type_name}", _perform, adapter, operation, d, registry,
        caller_ip=caller_ip,
    )
    return _job_response(job)


@app.post(
    "/data/{type_name}/read",
    response_model=JobResponse,
    status_code=202,
    tags=["Data Sources"],
    summary="Read a data source (async)",
    dependencies=[Depends(require_api_key)],
)
def read_data_source(type_name: str, req: ResourceRequest, request: Request):
    source = _data_source(type_name)
    _check_config(source, req.config)
    registry = _registry()

    def _read(log=print):
        d = source.new_data(req.config)
        source.read(d, registry)
        return d.to_state()

    job = launch_job(f"read {source.type_name}", _read, caller_ip=_get_client_ip(request))
    return _job_response(job)


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------

@app.get(
    "/jobs",
    response_model=List[JobDetailResponse],
    tags=["Jobs"],
    summary="List all jobs",
)
def list_jobs():
    """Returns all jobs (completed and in-progress), newest first."""
    return [_job_detail(j) for j in job_store.all()]


@app.get(
    "/jobs/{job_id}",
    response_model=JobDetailResponse,
    tags=["Jobs"],
    summary="Get full details for a single job",
)
def get_job(job_id: str):
    job = job_store.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found.")
    return _job_detail(job)


# ---------------------------------------------------------------------------
# WebSocket: live log streaming
# ---------------------------------------------------------------------------

@app.websocket("/ws/{job_id}")
async def websocket_logs(websocket: WebSocket, job_id: str):
    """
    Stream log lines for a running (or completed) job.

    Protocol — every message is a JSON frame:

      {"type": "log",    "data": "<log line>"}
      {"type": "status", "data": "running"|"succeeded"|"failed"}
        Sent once at connect and again when the job finishes.
      {"type": "result", "data": { ...state... }}
      {"type": "error",  "data": "<error message>"}
      {"type": "done"}
        Final frame.
      {"type": "ping"}
        Heartbeat every 15 s while the job is still running.

    Late joiners get every historical line replayed first, then live lines
    (or "done" at once if the job already finished).

    The job thread writes to a stdlib queue.Queue; the blocking get() runs
    in the default executor so the event loop stays free.
    """
    await websocket.accept()

    job = job_store.get(job_id)
    if not job:
        await websocket.send_text(
            json.dumps({"type": "error", "data": f"Job '{job_id}' not found."})
        )
        await websocket.close(code=4004)
        return

    loop = asyncio.get_event_loop()

    async def send(frame: dict) -> None:
        try:
            await websocket.send_text(json.dumps(frame, default=str))
        except WebSocketDisconnect:
            pass

    async def finish() -> None:
        await send({"type": "status", "data": job.status.value})
        if job.result:
            await send({"type": "result", "data": job.result})
        if job.error:
            await send({"type": "error", "data": job.error})
        await send({"type": "done"})

    finished = job.status in (JobStatus.SUCCEEDED, JobStatus.FAILED)
    # The queue also holds every replayed line; skip that many below
    history = list(job.logs)
    for line in history:
        await send({"type": "log", "data": line})

    if finished:
        await finish()
        await websocket.close()
        return

    await send({"type": "status", "data": job.status.value})

    def _blocking_get() -> object:
        return job.log_queue.get(timeout=15)

    skipped = 0
    try:
        while True:
            try:
                item = await loop.run_in_executor(None, _blocking_get)
            except asyncio.CancelledError:
                break
            except queue.Empty:
                await send({"type": "ping"})
                continue

            if item is None:
                break
            if skipped < len(history):
                skipped += 1
                continue
            await send({"type": "log", "data": item})
    except WebSocketDisconnect:
        return

    await finish()
