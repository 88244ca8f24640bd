"""Static accelerator catalog.

Built once at import time and exposed as a read-only mapping; listing order
is significant (it breaks ranking ties in the selector).

Prices are CNY street-price bands per unit.  ``compute_index`` is a relative
dense FP16 throughput index (roughly TFLOPS), not a datasheet figure.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType

from gpu_recommender.workload import WorkloadClass

_BOTH = frozenset({WorkloadClass.TRAINING, WorkloadClass.INFERENCE})
_INFERENCE_ONLY = frozenset({WorkloadClass.INFERENCE})


@dataclass(frozen=True)
class AcceleratorSpec:
    id: str
    capacity_gb: float
    price_band_low: int
    price_band_high: int
    compute_index: float
    supported_classes: frozenset[WorkloadClass]
    description: str

    def supports(self, workload_class: WorkloadClass) -> bool:
        return workload_class in self.supported_classes


# ---------------------------------------------------------------------------
# Catalog entries, in listing order.
# ---------------------------------------------------------------------------
_ENTRIES: tuple[AcceleratorSpec, ...] = (
    AcceleratorSpec(
        id="NVIDIA RTX 3090",
        capacity_gb=24,
        price_band_low=10_000,
        price_band_high=15_000,
        compute_index=71,
        supported_classes=_BOTH,
        description="Consumer Ampere card with 24 GB; a single unit covers small models.",
    ),
    AcceleratorSpec(
        id="NVIDIA RTX 4090",
        capacity_gb=24,
        price_band_low=15_000,
        price_band_high=20_000,
        compute_index=165,
        supported_classes=_BOTH,
        description="Consumer Ada card with strong FP16 throughput for mid-sized models.",
    ),
    AcceleratorSpec(
        id="NVIDIA T4",
        capacity_gb=16,
        price_band_low=8_000,
        price_band_high=12_000,
        compute_index=65,
        supported_classes=_INFERENCE_ONLY,
        description="Low-power Turing inference card for small, latency-tolerant serving.",
    ),
    AcceleratorSpec(
        id="NVIDIA L4",
        capacity_gb=24,
        price_band_low=18_000,
        price_band_high=25_000,
        compute_index=121,
        supported_classes=_INFERENCE_ONLY,
        description="Power-efficient Ada inference card with FP8 support.",
    ),
    AcceleratorSpec(
        id="NVIDIA RTX A6000",
        capacity_gb=48,
        price_band_low=35_000,
        price_band_high=45_000,
        compute_index=155,
        supported_classes=_BOTH,
        description="Workstation Ampere card with 48 GB for memory-hungry fine-tuning.",
    ),
    AcceleratorSpec(
        id="NVIDIA L40S",
        capacity_gb=48,
        price_band_low=60_000,
        price_band_high=80_000,
        compute_index=362,
        supported_classes=_BOTH,
        description="Datacenter Ada card balancing 48 GB with high throughput.",
    ),
    AcceleratorSpec(
        id="NVIDIA A100 40GB",
        capacity_gb=40,
        price_band_low=70_000,
        price_band_high=100_000,
        compute_index=312,
        supported_classes=_BOTH,
        description="Datacenter Ampere card with NVLink for multi-GPU training.",
    ),
    AcceleratorSpec(
        id="NVIDIA A100",
        capacity_gb=80,
        price_band_low=100_000,
        price_band_high=150_000,
        compute_index=312,
        supported_classes=_BOTH,
        description="A100 80GB offers large memory and high performance for large models.",
    ),
    AcceleratorSpec(
        id="NVIDIA H100",
        capacity_gb=80,
        price_band_low=250_000,
        price_band_high=300_000,
        compute_index=989,
        supported_classes=_BOTH,
        description="Hopper flagship with FP8 Transformer Engine for very large models.",
    ),
    AcceleratorSpec(
        id="NVIDIA H200",
        capacity_gb=141,
        price_band_low=320_000,
        price_band_high=400_000,
        compute_index=989,
        supported_classes=_BOTH,
        description="Hopper with 141 GB HBM3e for the largest memory footprints.",
    ),
)

CATALOG: MappingProxyType[str, AcceleratorSpec] = MappingProxyType(
    {spec.id: spec for spec in _ENTRIES}
)


def get_accelerator(accelerator_id: str) -> AcceleratorSpec | None:
    """Look up a catalog entry by id."""
    return CATALOG.get(accelerator_id)


def describe_accelerator(accelerator_id: str) -> str:
    """Return the catalog description, or an empty string for unknown ids."""
    spec = CATALOG.get(accelerator_id)
    return spec.description if spec else ""


def highest_capacity(catalog=CATALOG) -> AcceleratorSpec:
    """Largest-capacity entry; the first one listed wins a tie."""
    return max(catalog.values(), key=lambda spec: spec.capacity_gb)


def accelerator_options(catalog=CATALOG) -> list[dict]:
    """Options for the preferred-accelerator picker, in listing order."""
    return [
        {
            "value": spec.id,
            "label": f"{spec.id} ({spec.capacity_gb:g} GB)",
            "description": spec.description,
        }
        for spec in catalog.values()
    ]
