"""Data model for workload parameters, capacity estimates and recommendations."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from gpu_recommender.errors import InvalidParameter
from gpu_recommender.presets import resolve_parameter_count

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class PrecisionMode(Enum):
    FP32 = "FP32"
    FP16 = "FP16"
    MIXED = "Mixed"
    BF16 = "BF16"
    INT8 = "INT8"
    INT4 = "INT4"


class WorkloadClass(Enum):
    TRAINING = "training"
    INFERENCE = "inference"


class Provenance(Enum):
    RULE_BASED = "rule_based"
    ADVISORY_GENERATED = "advisory_generated"


# ---------------------------------------------------------------------------
# Field validation helpers
# ---------------------------------------------------------------------------


def _require_positive_int(field: str, value: object) -> None:
    # bool is an int subclass; a checkbox value must never pass as a count
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidParameter(field, value, "must be a positive integer")
    if value <= 0:
        raise InvalidParameter(field, value, "must be a positive integer")


def _parse_int(field: str, raw: object) -> int:
    """Parse a form value into an int without ever producing NaN or 0 silently."""
    if isinstance(raw, bool):
        raise InvalidParameter(field, raw, "must be an integer")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            raise InvalidParameter(field, raw, "must be an integer") from None
    raise InvalidParameter(field, raw, "must be an integer")


def _parse_float(field: str, raw: object) -> float:
    if isinstance(raw, bool):
        raise InvalidParameter(field, raw, "must be a number")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw.strip())
        except ValueError:
            raise InvalidParameter(field, raw, "must be a number") from None
    raise InvalidParameter(field, raw, "must be a number")


def _parse_bool(raw: object) -> bool:
    if isinstance(raw, str):
        return raw.strip().lower() in {"1", "true", "yes", "on"}
    return bool(raw)


# ---------------------------------------------------------------------------
# Workload parameters
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WorkloadParams:
    """Immutable per-request workload description.

    Validated on construction: an instance that exists is always safe to
    estimate.  ``precision`` and ``workload_class`` also accept their string
    values (``"Mixed"``, ``"training"``).
    """

    parameter_count: int  # millions of parameters
    batch_size: int
    sequence_length: int  # tokens
    precision: PrecisionMode = PrecisionMode.FP32
    extra_memory_gb: float = 0.0
    workload_class: WorkloadClass = WorkloadClass.TRAINING
    distributed: bool = False
    preferred_accelerator_id: str | None = None
    model_name: str = "Custom"
    training_steps: int | None = None  # informational, advisory prompt only

    def __post_init__(self) -> None:
        if not isinstance(self.precision, PrecisionMode):
            try:
                object.__setattr__(self, "precision", PrecisionMode(self.precision))
            except ValueError:
                raise InvalidParameter(
                    "precision", self.precision,
                    f"must be one of {[p.value for p in PrecisionMode]}",
                ) from None
        if not isinstance(self.workload_class, WorkloadClass):
            try:
                object.__setattr__(self, "workload_class", WorkloadClass(self.workload_class))
            except ValueError:
                raise InvalidParameter(
                    "workload_class", self.workload_class,
                    f"must be one of {[c.value for c in WorkloadClass]}",
                ) from None
        if self.preferred_accelerator_id is not None and not str(self.preferred_accelerator_id).strip():
            object.__setattr__(self, "preferred_accelerator_id", None)
        self.validate()

    def validate(self) -> None:
        """Raise ``InvalidParameter`` naming the first malformed field."""
        _require_positive_int("parameter_count", self.parameter_count)
        _require_positive_int("batch_size", self.batch_size)
        _require_positive_int("sequence_length", self.sequence_length)
        if self.training_steps is not None:
            _require_positive_int("training_steps", self.training_steps)

        extra = self.extra_memory_gb
        if isinstance(extra, bool) or not isinstance(extra, (int, float)):
            raise InvalidParameter("extra_memory_gb", extra, "must be a number")
        if not math.isfinite(extra) or extra < 0:
            raise InvalidParameter("extra_memory_gb", extra, "must be a finite number >= 0")

    @property
    def is_training(self) -> bool:
        return self.workload_class is WorkloadClass.TRAINING

    @classmethod
    def from_form(cls, form: Mapping[str, object]) -> WorkloadParams:
        """Build params from the raw values a form layer submits.

        Keys follow the form's camelCase names (``modelSize``, ``batchSize``,
        ``memoryUsage``, ``mode``, ``preferredGpu`` ...).  Every number may
        arrive as a string.  A blank ``modelSize`` is resolved from
        ``COMMON_MODELS`` when ``modelName`` is a known preset.
        """
        model_name = str(form.get("modelName") or "Custom")

        raw_size = form.get("modelSize")
        if raw_size is None or raw_size == "":
            raw_size = resolve_parameter_count(model_name)
        if raw_size is None or raw_size == "":
            raise InvalidParameter("parameter_count", raw_size, "is required")

        raw_steps = form.get("trainingSteps")
        training_steps = None
        if raw_steps is not None and raw_steps != "":
            training_steps = _parse_int("training_steps", raw_steps)

        preferred = form.get("preferredGpu")
        if preferred in (None, "", "auto"):
            preferred = None

        return cls(
            parameter_count=_parse_int("parameter_count", raw_size),
            batch_size=_parse_int("batch_size", form.get("batchSize")),
            sequence_length=_parse_int("sequence_length", form.get("sequenceLength")),
            precision=form.get("precision", PrecisionMode.FP32.value),
            extra_memory_gb=_parse_float("extra_memory_gb", form.get("memoryUsage", 0)),
            workload_class=form.get("mode", WorkloadClass.TRAINING.value),
            distributed=_parse_bool(form.get("usesDistributedTraining", False)),
            preferred_accelerator_id=str(preferred) if preferred is not None else None,
            model_name=model_name,
            training_steps=training_steps,
        )


# ---------------------------------------------------------------------------
# Derived and output types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapacityEstimate:
    """Memory breakdown in GB (2^30 bytes), unrounded."""

    base_gb: float
    activation_gb: float
    optimizer_gb: float
    total_gb: float


class Recommendation(BaseModel):
    """Validated accelerator recommendation."""

    model_config = ConfigDict(frozen=True)

    accelerator_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1)
    price_range_text: str = ""
    justification_text: str = ""
    estimated_capacity_text: str = ""
    estimated_system_memory_text: str = ""
    alternative_accelerator_ids: list[str] = Field(
        default_factory=list, max_length=3,
        description="Ordered alternatives, never including accelerator_id",
    )
    provenance: Provenance = Provenance.RULE_BASED
    fallback_reason: str | None = Field(
        None, description="Why the advisory path was abandoned (None when it was not attempted or won)"
    )

    @model_validator(mode="after")
    def _check_alternatives(self) -> Recommendation:
        alternatives = self.alternative_accelerator_ids
        if self.accelerator_id in alternatives:
            raise ValueError("alternative_accelerator_ids must not contain accelerator_id")
        if len(set(alternatives)) != len(alternatives):
            raise ValueError("alternative_accelerator_ids must not contain duplicates")
        return self

    @property
    def is_advisory(self) -> bool:
        return self.provenance is Provenance.ADVISORY_GENERATED

    def to_display_dict(self) -> dict:
        """Shape consumed by the form layer's result card."""
        return {
            "model": self.accelerator_id,
            "quantity": self.quantity,
            "priceRange": self.price_range_text,
            "reason": self.justification_text,
            "estimatedVram": self.estimated_capacity_text,
            "estimatedMemory": self.estimated_system_memory_text,
            "alternativeModels": list(self.alternative_accelerator_ids),
            "isAIGenerated": self.is_advisory,
        }
