"""
api/schemas.py

Pydantic models for all API request and response bodies.

Design philosophy:
  - Request models validate and document what the host engine must send.
  - Response models are the single source of truth for what we return.
  - We never expose raw Azure SDK objects — resource results are always the
    persisted state layout produced by ResourceData.to_state().
  - JobResponse is the central type: every remote operation returns one.
    The host only needs to know one shape and can poll /jobs/{job_id}.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Job state machine
# ---------------------------------------------------------------------------

class JobStatus(str, Enum):
    """
    Lifecycle of an async job (create / read / update / delete / import).

    Transitions (happy path):
        pending → running → succeeded

    Transitions (failure):
        pending → running → failed

    pending   : Job accepted, background thread not yet started.
    running   : Background thread is calling the adapter.
    succeeded : Adapter returned without raising.
    failed    : Adapter raised; error message stored in Job.error.
    """
    PENDING   = "pending"
    RUNNING   = "running"
    SUCCEEDED = "succeeded"
    FAILED    = "failed"


class Operation(str, Enum):
    CREATE = "create"
    READ   = "read"
    UPDATE = "update"
    DELETE = "delete"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ConfigureRequest(BaseModel):
    """
    Body for POST /configure. Any field left null falls back to the
    matching ARM_* environment variable.
    """
    client_id:       Optional[str] = Field(None, description="Service principal application id")
    client_secret:   Optional[str] = Field(None, description="Service principal secret")
    tenant_id:       Optional[str] = Field(None, description="Directory (tenant) id")
    subscription_id: Optional[str] = Field(None, description="Target subscription id")
    environment:     Optional[str] = Field(None, description="Cloud name: public | china | german | usgovernment | AzurePublicCloud ...")
    skip_credentials_validation: Optional[bool] = Field(None, description="Skip the eager token exchange")
    host_version:    Optional[str] = Field(None, description="Calling engine version, added to the user agent")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "client_id": "00000000-0000-0000-0000-000000000000",
                "client_secret": "********",
                "tenant_id": "00000000-0000-0000-0000-000000000000",
                "subscription_id": "00000000-0000-0000-0000-000000000000",
                "environment": "public",
            }
        }
    )


class ResourceRequest(BaseModel):
    """Body for the resource CRUD endpoints — the persisted state of one instance."""
    config:     Dict[str, Any] = Field(default_factory=dict, description="Declarative config")
    id:         str            = Field("", description="Tracked remote id; empty before create")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Last observed attributes")


class ImportRequest(BaseModel):
    """Body for POST /resources/{type}/import."""
    id: str = Field(..., description="External id of the remote object to adopt")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------

class ConfigureResponse(BaseModel):
    environment:     str
    subscription_id: str
    tenant_id:       str
    families:        List[str]


class ValidateResponse(BaseModel):
    """Returned by POST /resources/{type}/validate — zero cloud calls."""
    valid:  bool
    errors: List[str] = Field(default_factory=list)


class SchemaResponse(BaseModel):
    type_name: str
    kind:      str = Field(..., description="resource | data_source")
    fields:    Dict[str, Dict[str, Any]]


class JobResponse(BaseModel):
    """
    Returned by every remote-operation endpoint.

    The client should:
      1. Store job_id.
      2. Open WS ws://<host>/ws/{job_id} to stream real-time logs.
      3. Poll GET /jobs/{job_id} to check status after WS closes.
    """
    job_id:  str       = Field(..., description="UUID identifying this async operation")
    status:  JobStatus = Field(..., description="Current lifecycle state")
    message: str       = Field(..., description="Human-readable summary of current state")


class JobDetailResponse(BaseModel):
    """
    Full job record returned by GET /jobs/{job_id}.
    Superset of JobResponse — includes logs and the resulting state.
    """
    job_id:   str            = Field(..., description="UUID")
    status:   JobStatus      = Field(..., description="Current lifecycle state")
    message:  str            = Field(..., description="Human-readable summary")
    logs:     List[str]      = Field(default_factory=list, description="All log lines emitted so far")
    error:    Optional[str]  = Field(None, description="Exception message if status=failed")
    result:   Optional[dict] = Field(None, description="Resulting state ({type, id, config, attributes, status})")
