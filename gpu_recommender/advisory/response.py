"""Parse and validate the advisory service's JSON answer.

Policy for optional fields: only ``model`` and ``quantity`` are required.
Missing or null ``priceRange``/``reason``/``estimatedVram``/``estimatedMemory``
pass through as empty strings rather than triggering a fallback.

An answer naming a catalog accelerator must still cover the estimated
requirement (``quantity * capacity_gb >= total_gb``); ``check_capacity``
rejects one that does not.  Ids outside the catalog are taken as given.
"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping

from gpu_recommender.catalog import CATALOG, AcceleratorSpec
from gpu_recommender.errors import AdvisoryMalformedResponse, AdvisoryValidationFailure
from gpu_recommender.workload import CapacityEstimate, Provenance, Recommendation

_DECODER = json.JSONDecoder()

MAX_ALTERNATIVES = 3

TEXT_FIELDS = {
    "priceRange": "price_range_text",
    "reason": "justification_text",
    "estimatedVram": "estimated_capacity_text",
    "estimatedMemory": "estimated_system_memory_text",
}


def extract_json_object(text: str) -> dict:
    """Return the first JSON object embedded in *text*.

    Tolerates surrounding prose and ```json code fences.
    """
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = _DECODER.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        return obj
    raise AdvisoryMalformedResponse("No JSON object found in advisory response")


def validate_advice(advice: dict) -> dict:
    """Check the required fields; return *advice* unchanged when valid."""
    model = advice.get("model")
    if not isinstance(model, str) or not model.strip():
        raise AdvisoryValidationFailure(f"'model' must be a non-empty string, got {model!r}")

    quantity = advice.get("quantity")
    if isinstance(quantity, bool) or not isinstance(quantity, (int, float)):
        raise AdvisoryValidationFailure(f"'quantity' must be a number, got {quantity!r}")
    if not math.isfinite(quantity) or quantity <= 0:
        raise AdvisoryValidationFailure(f"'quantity' must be > 0, got {quantity!r}")
    return advice


def _clean_alternatives(raw: object, selected: str) -> list[str]:
    if not isinstance(raw, list):
        return []
    seen: list[str] = []
    for item in raw:
        if not isinstance(item, str):
            continue
        name = item.strip()
        if name and name != selected and name not in seen:
            seen.append(name)
    return seen[:MAX_ALTERNATIVES]


def to_recommendation(advice: dict) -> Recommendation:
    """Map a validated advisory object onto a Recommendation.

    Values are taken as given; a fractional quantity is rounded up to whole
    units.
    """
    model = advice["model"].strip()
    fields = {
        target: "" if advice.get(source) is None else str(advice[source])
        for source, target in TEXT_FIELDS.items()
    }
    return Recommendation(
        accelerator_id=model,
        quantity=math.ceil(advice["quantity"]),
        alternative_accelerator_ids=_clean_alternatives(advice.get("alternativeModels"), model),
        provenance=Provenance.ADVISORY_GENERATED,
        **fields,
    )


def parse_advice(text: str) -> Recommendation:
    """Extract, validate and convert the advisory response text."""
    return to_recommendation(validate_advice(extract_json_object(text)))


def check_capacity(
    recommendation: Recommendation,
    estimate: CapacityEstimate,
    catalog: Mapping[str, AcceleratorSpec] = CATALOG,
) -> Recommendation:
    """Reject a catalog accelerator whose units cannot hold the estimate."""
    spec = catalog.get(recommendation.accelerator_id)
    if spec is not None and recommendation.quantity * spec.capacity_gb < estimate.total_gb:
        raise AdvisoryValidationFailure(
            f"{recommendation.quantity} x {spec.id} provides "
            f"{recommendation.quantity * spec.capacity_gb:g} GB, "
            f"below the estimated {estimate.total_gb:.2f} GB"
        )
    return recommendation
