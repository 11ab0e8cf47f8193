"""
azurerm/resources/base.py

The contract every resource type implements, plus the declarative state
handle adapters read from and write to.

To add a new resource type:
  1. Create azurerm/resources/<type>.py
  2. Define a ResourceConfig model for its declarative fields
  3. Subclass ResourceAdapter and implement the six abstract methods
  4. Register it in azurerm/__init__.py

Adapters own no state: everything they need arrives as the ResourceData
handle and the session's ClientRegistry (`meta`).
"""

import copy
import logging
import typing
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Set, Type

import pydantic
from azure.core.exceptions import HttpResponseError
from pydantic_core import PydanticUndefined

from ..exceptions import (
    AzureRMError,
    InconsistentStateError,
    NotFoundError,
    OperationCancelledError,
    RemoteOperationError,
    ValidationError,
)
from ..polling import is_not_found, wait_for_completion
from ..resource_id import ResourceID, parse_resource_id
from ..validation import AllowedValues, ResourceConfig

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Declarative state
# ---------------------------------------------------------------------------

class ResourceStatus(str, Enum):
    """
    absent   : no remote object is tracked (no id).
    pending  : a create is in flight.
    present  : the last read matched the desired config.
    drifted  : the last read differs from the desired config.
    """
    ABSENT  = "absent"
    PENDING = "pending"
    PRESENT = "present"
    DRIFTED = "drifted"


def _equivalent(desired: Any, observed: Any, path: str, ignore_case: Set[str]) -> bool:
    if isinstance(desired, dict) and isinstance(observed, dict):
        return all(
            _equivalent(v, observed.get(k), f"{path}.{k}" if path else k, ignore_case)
            for k, v in desired.items()
        )
    if isinstance(desired, list) and isinstance(observed, list):
        return len(desired) == len(observed) and all(
            _equivalent(a, b, path, ignore_case) for a, b in zip(desired, observed)
        )
    if path in ignore_case and isinstance(desired, str) and isinstance(observed, str):
        return desired.lower() == observed.lower()
    return desired == observed


class ResourceData:
    """
    Mutable handle on one resource instance's declarative state.

    `config` is what the user asked for; `attributes` is what the last
    create/read observed, including computed fields. get() prefers the
    observed value and falls back to the config.
    """

    def __init__(self, resource_type: str, config: Optional[Dict[str, Any]] = None,
                 id: str = "", attributes: Optional[Dict[str, Any]] = None):
        self.resource_type = resource_type
        self.config: Dict[str, Any] = copy.deepcopy(config or {})
        self._attributes: Dict[str, Any] = copy.deepcopy(attributes or {})
        self._id = id or ""
        self.status = ResourceStatus.PRESENT if self._id else ResourceStatus.ABSENT

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, id: str) -> None:
        """Setting an empty id marks the resource as gone and drops its attributes."""
        self._id = id or ""
        if not self._id:
            self._attributes = {}
            self.status = ResourceStatus.ABSENT

    def get(self, key: str, default: Any = None) -> Any:
        if key in self._attributes:
            return self._attributes[key]
        return self.config.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._attributes[key] = value

    @property
    def attributes(self) -> Dict[str, Any]:
        merged = copy.deepcopy(self.config)
        merged.update(copy.deepcopy(self._attributes))
        return merged

    def mark_pending(self) -> None:
        self.status = ResourceStatus.PENDING

    def diff(self, ignore_case: Iterable[str] = (), config: Optional[Dict[str, Any]] = None) -> List[str]:
        """Top-level config keys whose observed value differs from the desired one."""
        folded = set(ignore_case)
        return sorted(
            key for key, desired in (self.config if config is None else config).items()
            if key in self._attributes and not _equivalent(desired, self._attributes[key], key, folded)
        )

    def refresh(self, observed: Dict[str, Any], ignore_case: Iterable[str] = ()) -> None:
        """Record a successful read. Keys the API does not return are kept."""
        self._attributes.update(copy.deepcopy(observed))
        self.status = ResourceStatus.DRIFTED if self.diff(ignore_case) else ResourceStatus.PRESENT

    def to_state(self) -> Dict[str, Any]:
        return {
            "type": self.resource_type,
            "id": self._id,
            "config": copy.deepcopy(self.config),
            "attributes": copy.deepcopy(self._attributes),
            "status": self.status.value,
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "ResourceData":
        d = cls(state["type"], config=state.get("config"), id=state.get("id", ""),
                attributes=state.get("attributes"))
        if state.get("status"):
            d.status = ResourceStatus(state["status"])
        return d


# ---------------------------------------------------------------------------
# Schema export
# ---------------------------------------------------------------------------

_SCALARS = {str: "string", int: "int", bool: "bool", float: "float"}


def _allowed(annotation, metadata) -> Optional[AllowedValues]:
    for item in metadata:
        if isinstance(item, AllowedValues):
            return item
    if typing.get_origin(annotation) is typing.Annotated:
        return _allowed(None, typing.get_args(annotation)[1:])
    return None


def _type_spec(annotation) -> Dict[str, Any]:
    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if origin is typing.Annotated:
        return _type_spec(args[0])
    if origin is typing.Union:
        inner = [a for a in args if a is not type(None)]
        return _type_spec(inner[0])
    if origin in (list, List):
        spec: Dict[str, Any] = {"type": "list", "elem": _type_spec(args[0]) if args else {"type": "string"}}
        allowed = _allowed(args[0], ()) if args else None
        if allowed:
            spec["elem"]["allowed"] = list(allowed.values)
            spec["elem"]["ignore_case"] = allowed.ignore_case
        return spec
    if origin in (dict, Dict):
        return {"type": "map", "elem": _type_spec(args[1]) if args else {"type": "string"}}
    if isinstance(annotation, type) and issubclass(annotation, pydantic.BaseModel):
        return {"type": "object", "schema": describe(annotation)}
    return {"type": _SCALARS.get(annotation, "string")}


def describe(model: Type[pydantic.BaseModel]) -> Dict[str, Dict[str, Any]]:
    """Field name -> {type, required, optional, force_new, sensitive, allowed, default}."""
    fields: Dict[str, Dict[str, Any]] = {}
    for name, info in model.model_fields.items():
        spec = _type_spec(info.annotation)
        extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
        required = info.is_required()
        spec.update(
            required=required,
            optional=not required,
            computed=False,
            force_new=bool(extra.get("force_new")),
            sensitive=bool(extra.get("sensitive")),
        )
        allowed = _allowed(info.annotation, info.metadata)
        if allowed:
            spec["allowed"] = list(allowed.values)
            spec["ignore_case"] = allowed.ignore_case
        if not required:
            if info.default_factory is not None:
                spec["default"] = info.default_factory()
            elif info.default is not PydanticUndefined:
                spec["default"] = info.default
        fields[name] = spec
    return fields


def _ignore_case_paths(schema: Dict[str, Dict[str, Any]], prefix: str = "") -> Set[str]:
    paths: Set[str] = set()
    for name, spec in schema.items():
        path = f"{prefix}{name}"
        if spec.get("ignore_case"):
            paths.add(path)
        if spec.get("type") == "object":
            paths |= _ignore_case_paths(spec["schema"], f"{path}.")
        elem = spec.get("elem") or {}
        if elem.get("ignore_case"):
            paths.add(path)
        if elem.get("type") == "object":
            paths |= _ignore_case_paths(elem["schema"], f"{path}.")
    return paths


# ---------------------------------------------------------------------------
# Remote-call helpers
# ---------------------------------------------------------------------------

@contextmanager
def remote_call(description: str):
    """Translate SDK HTTP errors raised inside the block into plugin errors."""
    try:
        yield
    except HttpResponseError as exc:
        if is_not_found(exc):
            raise NotFoundError(f"{description}: {exc.message}") from exc
        raise RemoteOperationError(f"Error {description}: {exc.message}", status_code=exc.status_code) from exc


def wire(obj: Any, *path: str, default: Any = None) -> Any:
    """Walk attributes (SDK models) or keys (dicts), returning default on any gap."""
    for name in path:
        if obj is None:
            return default
        obj = obj.get(name) if isinstance(obj, dict) else getattr(obj, name, None)
    return default if obj is None else obj


# ---------------------------------------------------------------------------
# Adapter contract
# ---------------------------------------------------------------------------

class _SchemaMixin:
    type_name: str = ""
    display_name: str = ""
    config_model: Type[ResourceConfig] = ResourceConfig
    # computed attribute name -> type
    computed: Dict[str, str] = {}

    def schema(self) -> Dict[str, Dict[str, Any]]:
        fields = describe(self.config_model)
        for name, type_name in self.computed.items():
            fields[name] = {
                "type": type_name, "required": False, "optional": False,
                "computed": True, "force_new": False, "sensitive": name in self.sensitive_computed,
            }
        return fields

    sensitive_computed: Set[str] = set()

    def validate(self, config: Dict[str, Any]) -> ResourceConfig:
        """Validate a declarative config. Never touches the network."""
        try:
            return self.config_model.model_validate(config)
        except pydantic.ValidationError as exc:
            errors = [
                f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
                for err in exc.errors()
            ]
            raise ValidationError(f"Invalid configuration for {self.type_name}", errors) from None

    def ignore_case_paths(self) -> Set[str]:
        return _ignore_case_paths(describe(self.config_model))


class ResourceAdapter(_SchemaMixin, ABC):
    """
    CRUD + translation for one resource type.

    create/update/delete block until the remote operation is terminal.
    read returns False (and clears the id) when the remote object is gone.
    """

    @abstractmethod
    def create(self, d: ResourceData, meta) -> None:
        ...

    @abstractmethod
    def read(self, d: ResourceData, meta) -> bool:
        ...

    @abstractmethod
    def update(self, d: ResourceData, meta) -> None:
        ...

    @abstractmethod
    def delete(self, d: ResourceData, meta) -> None:
        ...

    @abstractmethod
    def expand(self, config: ResourceConfig) -> Dict[str, Any]:
        """Declarative config -> wire payload."""
        ...

    @abstractmethod
    def flatten(self, obj: Any) -> Dict[str, Any]:
        """Wire object -> declarative attributes."""
        ...

    # ------------------------------------------------------------------
    # shared behaviour
    # ------------------------------------------------------------------

    def new_data(self, config: Optional[Dict[str, Any]] = None, id: str = "") -> ResourceData:
        return ResourceData(self.type_name, config=config, id=id)

    def load_config(self, d: ResourceData) -> ResourceConfig:
        """Validate the handle's config and store it back in normalised form."""
        config = self.validate(d.config)
        d.config = config.model_dump()
        return config

    def get_or_forget(self, d: ResourceData, description: str, getter, *args) -> Any:
        """Run a GET; a 404 clears the handle's id and returns None."""
        try:
            return getter(*args)
        except HttpResponseError as exc:
            if is_not_found(exc):
                logger.info("%s was not found - removing from state", description)
                d.set_id("")
                return None
            raise RemoteOperationError(
                f"Error making Read request on {description}: {exc.message}",
                status_code=exc.status_code,
            ) from exc

    def parse_id(self, id: str) -> ResourceID:
        return parse_resource_id(id)

    def force_new_fields(self) -> Set[str]:
        return {name for name, spec in describe(self.config_model).items() if spec["force_new"]}

    def replacement_fields(self, d: ResourceData) -> List[str]:
        """force_new fields whose desired value differs from the tracked one."""
        if not d.id:
            return []
        desired = self.validate(d.config).model_dump()
        return [key for key in d.diff(self.ignore_case_paths(), desired) if key in self.force_new_fields()]

    def import_state(self, import_id: str, meta) -> ResourceData:
        """Adopt a pre-existing remote object by its external id."""
        self.parse_id(import_id)
        d = self.new_data(id=import_id)
        if not self.read(d, meta):
            raise NotFoundError(f"Cannot import non-existent remote object {import_id!r} as {self.type_name}")
        # Adopted objects start with their observed state as the desired state
        d.config = {k: v for k, v in d.attributes.items() if k in self.config_model.model_fields}
        d.status = ResourceStatus.PRESENT
        return d

    def wait(self, poller, meta, description: str) -> Any:
        return wait_for_completion(poller, description, meta.stop_context, meta.poll_interval)

    def observe(self, d: ResourceData, attributes: Dict[str, Any]) -> None:
        d.refresh(attributes, self.ignore_case_paths())

    def label(self, name: str, group: str) -> str:
        return f"{self.display_name} {name!r} (Resource Group {group!r})"

    def require_id(self, obj: Any, step: str, name: str, group: str) -> str:
        id = getattr(obj, "id", None)
        if not id:
            raise InconsistentStateError(f"Cannot read {self.label(name, group)} ID after {step}")
        return id

    def read_after(self, step: str, d: ResourceData, meta, name: str, group: str) -> None:
        """Refresh computed fields after a mutation, naming the step on failure."""
        try:
            found = self.read(d, meta)
        except OperationCancelledError:
            raise
        except AzureRMError as exc:
            raise RemoteOperationError(
                f"Error reading {self.label(name, group)} after {step}: {exc}",
                status_code=getattr(exc, "status_code", None),
                step=step,
            ) from exc
        if not found:
            raise InconsistentStateError(f"{self.label(name, group)} was not found after {step}")


class DataSource(_SchemaMixin, ABC):
    """Read-only lookup. `read` fills the handle's attributes."""

    @abstractmethod
    def read(self, d: ResourceData, meta) -> bool:
        ...

    def new_data(self, config: Optional[Dict[str, Any]] = None) -> ResourceData:
        return ResourceData(self.type_name, config=config)

    def load_config(self, d: ResourceData) -> ResourceConfig:
        config = self.validate(d.config)
        d.config = config.model_dump()
        return config
