"""Memory capacity estimation from workload parameters.

Pure computation, no I/O.  Inputs are validated when ``WorkloadParams`` is
constructed, so an invalid field raises ``InvalidParameter`` before any
arithmetic happens here.

The ×3 activation and ×2 optimizer multipliers are heuristics kept for
compatibility with existing recommendations; they are not derived from a
memory model of any specific framework.
"""

from __future__ import annotations

import logging
import math

from gpu_recommender.errors import InvalidParameter
from gpu_recommender.workload import CapacityEstimate, PrecisionMode, WorkloadParams

logger = logging.getLogger(__name__)

GIB = 1024**3

BYTES_PER_PARAM: dict[PrecisionMode, float] = {
    PrecisionMode.FP32: 4,
    PrecisionMode.FP16: 2,
    PrecisionMode.MIXED: 3,  # FP16 working copy + FP32 master weights, averaged
    PrecisionMode.BF16: 2,
    PrecisionMode.INT8: 1,
    PrecisionMode.INT4: 0.5,
}

# Forward activations plus two backward-pass buffers
TRAINING_ACTIVATION_MULTIPLIER = 3
# First and second optimizer moments
OPTIMIZER_STATE_MULTIPLIER = 2


def bytes_per_param(precision: PrecisionMode) -> float:
    """Storage bytes per parameter for *precision*."""
    return BYTES_PER_PARAM[precision]


def estimate_capacity(params: WorkloadParams) -> CapacityEstimate:
    """Estimate weight, activation and optimizer memory for a workload.

    Raises:
        InvalidParameter: If a field is invalid, or the workload is so large
            that its memory requirement is not a finite number.
    """
    params.validate()
    bpp = bytes_per_param(params.precision)
    try:
        param_bytes = params.parameter_count * 1e6 * bpp

        base_gb = param_bytes / GIB

        tokens_per_batch = params.batch_size * params.sequence_length
        multiplier = TRAINING_ACTIVATION_MULTIPLIER if params.is_training else 1
        activation_gb = tokens_per_batch * param_bytes * multiplier / GIB

        optimizer_gb = base_gb * OPTIMIZER_STATE_MULTIPLIER if params.is_training else 0.0

        total_gb = base_gb + activation_gb + optimizer_gb + params.extra_memory_gb
    except OverflowError:
        total_gb = math.inf
    if not math.isfinite(total_gb):
        raise InvalidParameter(
            "parameter_count", params.parameter_count,
            "workload is too large to estimate a finite memory requirement",
        )

    logger.debug(
        "Estimated %s/%s: base=%.2f act=%.2f opt=%.2f total=%.2f GB",
        params.workload_class.value, params.precision.value,
        base_gb, activation_gb, optimizer_gb, total_gb,
    )
    return CapacityEstimate(
        base_gb=base_gb,
        activation_gb=activation_gb,
        optimizer_gb=optimizer_gb,
        total_gb=total_gb,
    )
