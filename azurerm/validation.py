"""
azurerm/validation.py

Reusable pydantic building blocks for resource config models.

Allow-lists are expressed as Annotated types so the same declaration both
validates input and shows up in the exported schema:

    tier: StringInSlice(["Basic"], ignore_case=True)
    capacity: IntInSlice([50, 100])

Field flags the host engine cares about (force_new, sensitive) ride on
`Field(json_schema_extra=...)` via the ForceNew / Sensitive helpers.
"""

import ipaddress
import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, Iterable, Tuple

from pydantic import AfterValidator, BaseModel, ConfigDict, Field


class ResourceConfig(BaseModel):
    """Base for every declarative config model. Unknown keys are rejected."""
    model_config = ConfigDict(extra="forbid")


@dataclass(frozen=True)
class AllowedValues:
    """Schema marker carried in Annotated metadata next to the validator."""
    values: Tuple[Any, ...]
    ignore_case: bool = False


def StringInSlice(values: Iterable[str], ignore_case: bool = False):
    allowed = tuple(values)
    folded = {v.lower() for v in allowed}

    def _check(value: str) -> str:
        ok = value.lower() in folded if ignore_case else value in allowed
        if not ok:
            raise ValueError(f"expected value to be one of {list(allowed)}, got {value!r}")
        return value

    return Annotated[str, AfterValidator(_check), AllowedValues(allowed, ignore_case)]


def IntInSlice(values: Iterable[int]):
    allowed = tuple(values)

    def _check(value: int) -> int:
        if value not in allowed:
            raise ValueError(f"expected value to be one of {list(allowed)}, got {value}")
        return value

    return Annotated[int, AfterValidator(_check), AllowedValues(allowed)]


def ForceNew(default: Any = ..., **kwargs):
    return Field(default, json_schema_extra={"force_new": True}, **kwargs)


def Sensitive(default: Any = ..., **kwargs):
    return Field(default, json_schema_extra={"sensitive": True}, **kwargs)


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

def normalize_location(location: str) -> str:
    """'West Europe' and 'westeurope' are the same region to ARM."""
    return location.replace(" ", "").lower()


def enum_value(value: Any) -> Any:
    """Unwrap SDK enum members to their wire string."""
    return getattr(value, "value", value)


Location = Annotated[str, AfterValidator(normalize_location)]


# ---------------------------------------------------------------------------
# Field validators
# ---------------------------------------------------------------------------

_RESOURCE_GROUP_RE = re.compile(r"^[-\w._()]+$")


def _resource_group_name(value: str) -> str:
    if len(value) > 80:
        raise ValueError("may not exceed 80 characters in length")
    if value.endswith("."):
        raise ValueError("may not end with a period")
    if not _RESOURCE_GROUP_RE.match(value):
        raise ValueError("may only contain alphanumeric characters, dash, underscores, parentheses and periods")
    return value


ResourceGroupName = Annotated[str, AfterValidator(_resource_group_name)]


def _tags(value: Dict[str, str]) -> Dict[str, str]:
    if len(value) > 15:
        raise ValueError("a maximum of 15 tags can be applied to each ARM resource")
    for k, v in value.items():
        if len(k) > 512:
            raise ValueError(f"the maximum length for a tag key is 512 characters: {k!r}")
        if len(v) > 256:
            raise ValueError(f"the maximum length for a tag value is 256 characters: the value for {k!r} is {len(v)}")
    return value


Tags = Annotated[Dict[str, str], AfterValidator(_tags)]


def _ipv4(value: str) -> str:
    try:
        ipaddress.IPv4Address(value)
    except ValueError:
        raise ValueError(f"expected a valid IPv4 address, got {value!r}") from None
    return value


IPv4 = Annotated[str, AfterValidator(_ipv4)]


def _cidr(value: str) -> str:
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        raise ValueError(f"expected a valid CIDR block, got {value!r}") from None
    return value


CIDR = Annotated[str, AfterValidator(_cidr)]


def pattern(regex: str, message: str):
    compiled = re.compile(regex)

    def _check(value: str) -> str:
        if not compiled.match(value):
            raise ValueError(message)
        return value

    return Annotated[str, AfterValidator(_check)]


_UUID_RE = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

UUID = pattern(_UUID_RE, "expected a UUID")