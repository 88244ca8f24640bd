"""Rule-based accelerator selection against the static catalog.

Ranking: accelerators that hold the whole workload on one unit come first,
then those that need several.  Within each group entries are ordered by
ascending ``compute_index / price_band_low``; catalog listing order breaks
ties (``sorted`` is stable).
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping

from gpu_recommender.catalog import CATALOG, AcceleratorSpec, highest_capacity
from gpu_recommender.errors import CatalogExhausted
from gpu_recommender.workload import (
    CapacityEstimate,
    PrecisionMode,
    Provenance,
    Recommendation,
    WorkloadClass,
    WorkloadParams,
)

logger = logging.getLogger(__name__)

MAX_ALTERNATIVES = 3
SYSTEM_MEMORY_FACTOR = 1.5
CURRENCY_SYMBOL = "¥"

PRECISION_NOTES: dict[PrecisionMode, str] = {
    PrecisionMode.FP16: "FP16 halves weight memory and speeds up tensor-core math.",
    PrecisionMode.MIXED: (
        "Mixed precision computes in FP16 while keeping FP32 master weights, "
        "preserving accuracy with better throughput."
    ),
    PrecisionMode.BF16: "BF16 halves weight memory and keeps the FP32 exponent range, so no loss scaling is needed.",
    PrecisionMode.INT8: "INT8 quantization cuts weight memory to a quarter of FP32.",
    PrecisionMode.INT4: "INT4 quantization cuts weight memory to an eighth of FP32, at some cost in accuracy.",
}


def units_needed(total_gb: float, capacity_gb: float) -> int:
    """Units of *capacity_gb* required to hold *total_gb*; never less than 1."""
    return max(1, math.ceil(total_gb / capacity_gb))


def format_price_range(spec: AcceleratorSpec, quantity: int) -> str:
    low = spec.price_band_low * quantity
    high = spec.price_band_high * quantity
    return f"{CURRENCY_SYMBOL}{low:,} - {CURRENCY_SYMBOL}{high:,}"


def rank_candidates(
    total_gb: float,
    workload_class: WorkloadClass,
    catalog: Mapping[str, AcceleratorSpec] = CATALOG,
) -> list[AcceleratorSpec]:
    """Return class-compatible accelerators in recommendation order.

    Raises:
        CatalogExhausted: If no accelerator supports *workload_class*.
    """
    eligible = [spec for spec in catalog.values() if spec.supports(workload_class)]
    if not eligible:
        raise CatalogExhausted(workload_class.value)

    return sorted(
        eligible,
        key=lambda spec: (
            0 if spec.capacity_gb >= total_gb else 1,
            spec.compute_index / spec.price_band_low,
        ),
    )


def _multi_unit_note(quantity: int, workload_class: WorkloadClass) -> str:
    if workload_class is WorkloadClass.TRAINING:
        return (
            f"{quantity} units are recommended; use distributed training "
            f"(data, tensor or pipeline parallelism) to spread the memory load."
        )
    return f"{quantity} units are recommended; shard the model and run them in parallel."


def build_justification(
    spec: AcceleratorSpec,
    quantity: int,
    estimate: CapacityEstimate,
    params: WorkloadParams,
    opening_notes: list[str],
) -> str:
    """Assemble the justification text in a fixed order."""
    parts = list(opening_notes)
    parts.append(f"This is a {params.workload_class.value} workload.")
    parts.append(
        f"Model size {params.parameter_count:,}M parameters, batch size "
        f"{params.batch_size}, sequence length {params.sequence_length} tokens."
    )
    parts.append(
        f"Estimated total memory requirement is {estimate.total_gb:.2f} GB "
        f"(weights {estimate.base_gb:.2f} GB, activations {estimate.activation_gb:.2f} GB, "
        f"optimizer state {estimate.optimizer_gb:.2f} GB, extra {params.extra_memory_gb:g} GB)."
    )
    parts.append(spec.description)
    if params.precision is not PrecisionMode.FP32:
        parts.append(PRECISION_NOTES[params.precision])
    if quantity > 1:
        parts.append(_multi_unit_note(quantity, params.workload_class))
        if params.workload_class is WorkloadClass.INFERENCE:
            parts.append(
                "Multiple units can also serve concurrent inference requests, raising throughput."
            )
    return " ".join(parts)


def select(
    estimate: CapacityEstimate,
    params: WorkloadParams,
    catalog: Mapping[str, AcceleratorSpec] = CATALOG,
) -> Recommendation:
    """Pick an accelerator and quantity for *estimate* without any external call."""
    total_gb = estimate.total_gb
    notes: list[str] = []

    try:
        ranking = rank_candidates(total_gb, params.workload_class, catalog)
    except CatalogExhausted as e:
        logger.warning("%s; falling back to the largest accelerator", e)
        ranking = []

    ranked_ids = [spec.id for spec in ranking]
    preferred = params.preferred_accelerator_id
    chosen: AcceleratorSpec | None = None

    if preferred is not None:
        if preferred in ranked_ids:
            chosen = catalog[preferred]
            notes.append(f"You explicitly chose {preferred}, which supports this workload.")
        else:
            reason = (
                "is not in the catalog"
                if preferred not in catalog
                else f"does not support {params.workload_class.value} workloads"
            )
            logger.info("Preferred accelerator %s %s; selecting automatically", preferred, reason)
            notes.append(f"The preferred accelerator {preferred} {reason}, so one was chosen automatically.")

    if chosen is None and ranking:
        chosen = ranking[0]
        notes.append(
            f"{chosen.id} ranks first among {params.workload_class.value} accelerators: "
            f"those that hold the workload on one unit come first, then ascending "
            f"compute index per unit of price."
        )
    elif chosen is None:
        chosen = highest_capacity(catalog)
        notes.append(
            f"No catalog accelerator supports {params.workload_class.value} workloads; "
            f"the requirements exceed catalog coverage, so the largest accelerator "
            f"{chosen.id} is suggested."
        )

    quantity = units_needed(total_gb, chosen.capacity_gb)
    if params.distributed and params.is_training:
        quantity = max(quantity, 2)

    alternatives = [aid for aid in ranked_ids if aid != chosen.id][:MAX_ALTERNATIVES]

    logger.info(
        "Rule-based selection: %d x %s for %.2f GB (%s)",
        quantity, chosen.id, total_gb, params.workload_class.value,
    )
    return Recommendation(
        accelerator_id=chosen.id,
        quantity=quantity,
        price_range_text=format_price_range(chosen, quantity),
        justification_text=build_justification(chosen, quantity, estimate, params, notes),
        estimated_capacity_text=f"{total_gb:.2f} GB",
        estimated_system_memory_text=f"{math.ceil(total_gb * SYSTEM_MEMORY_FACTOR)} GB",
        alternative_accelerator_ids=alternatives,
        provenance=Provenance.RULE_BASED,
    )
