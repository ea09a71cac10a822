"""
Named field access for the Solar Thermal Simulator.

Every external caller (number entities, the update_field service, the
get_fields service) reads and writes SimulationState through this module,
by field name. Names resolve against a table built once from the
SimulationState declaration, so the set of reachable fields is exactly the
set of declared fields.

Derived fields are rejected on the write path unless the caller is the
simulation itself (allow_derived=True).

Nothing here is synchronised; callers run on the Home Assistant event loop.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from .simulation_state import BoundedField, SimulationState

_LOGGER = logging.getLogger(__name__)

FIELD_NAMES: tuple[str, ...] = tuple(f.name for f in fields(SimulationState))
_FIELD_LOOKUP: frozenset[str] = frozenset(FIELD_NAMES)

_ERROR_PREFIX = "simulation.update_field"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class FieldError(Exception):
    """Base class for rejected field access."""

    code = "field_error"

    def __init__(self, detail: str, field_name: str | None = None) -> None:
        super().__init__(f"{_ERROR_PREFIX}: {detail}")
        self.field_name = field_name


class EmptyRequestError(FieldError):
    code = "empty_request"

    def __init__(self) -> None:
        super().__init__("Request was empty")


class MalformedRequestError(FieldError):
    code = "malformed_request"

    def __init__(self, reason: str = "") -> None:
        detail = "Unable to parse request"
        if reason:
            detail = f"{detail} ({reason})"
        super().__init__(detail)


class UnknownFieldError(FieldError):
    code = "unknown_field"

    def __init__(self, field_name: str) -> None:
        super().__init__(f"Unknown field '{field_name}'", field_name)


class StateUnavailableError(FieldError):
    code = "state_unavailable"

    def __init__(self) -> None:
        super().__init__("Simulation state is not available")


class ReadOnlyFieldError(FieldError):
    code = "read_only_field"

    def __init__(self, field_name: str) -> None:
        super().__init__(
            f"Field '{field_name}' is derived by the simulation and cannot be written",
            field_name,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldUpdate:
    """Outcome of a successful write."""

    field_name: str
    old_value: float
    new_value: float

    @property
    def message(self) -> str:
        return (
            f"Updated SimulationState::{self.field_name}: "
            f"{self.old_value} -> {self.new_value}"
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "message": self.message,
        }


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------

def get_field(state: SimulationState, name: str) -> BoundedField | None:
    """
    Return the named field, or None if the name is not declared.

    This is the live field, for use inside the package only. Callers outside
    go through SolarThermalSimulator.get_field, which hands out a copy.
    """
    if name not in _FIELD_LOOKUP:
        return None
    return getattr(state, name)


def set_field(
    state: SimulationState,
    name: str,
    value: float,
    *,
    allow_derived: bool = False,
) -> FieldUpdate:
    """
    Clamp-assign ``value`` to the named field.

    Raises UnknownFieldError for undeclared names and ReadOnlyFieldError for
    derived fields (unless allow_derived). No other field is touched.
    """
    target = get_field(state, name)
    if target is None:
        raise UnknownFieldError(name)
    if target.is_derived and not allow_derived:
        raise ReadOnlyFieldError(name)
    old = target.assign(value)
    _LOGGER.debug("Field %s: %s -> %s", name, old, target)
    return FieldUpdate(name, old, target.value)


def enumerate_fields(state: SimulationState) -> dict[str, dict]:
    """Snapshot of every field as {name: {value, min, max, kind}}."""
    return {name: getattr(state, name).as_dict() for name in FIELD_NAMES}


# ---------------------------------------------------------------------------
# Remote write requests
# ---------------------------------------------------------------------------

def parse_update_request(payload: Any) -> tuple[str, float]:
    """
    Decode ``{"field_name": str, "value": number}``.

    An absent or empty payload is an EmptyRequestError; anything else that
    does not have that exact shape is a MalformedRequestError.
    """
    if payload is None:
        raise EmptyRequestError
    if not isinstance(payload, Mapping):
        raise MalformedRequestError("payload is not an object")
    if not payload:
        raise EmptyRequestError

    name = payload.get("field_name")
    if not isinstance(name, str) or not name:
        raise MalformedRequestError("field_name must be a non-empty string")

    raw = payload.get("value")
    # bool is an int subclass; reject it explicitly
    if isinstance(raw, bool) or raw is None:
        raise MalformedRequestError("value must be a number")
    try:
        value = float(raw)
    except (TypeError, ValueError) as err:
        raise MalformedRequestError("value must be a number") from err
    if not math.isfinite(value):
        raise MalformedRequestError("value must be finite")
    return name, value


def apply_update_request(state: SimulationState, payload: Any) -> FieldUpdate:
    """Parse a remote write request and apply it."""
    name, value = parse_update_request(payload)
    return set_field(state, name, value)
