"""Tests for catalog ranking and rule-based selection."""

import math
from types import MappingProxyType

import pytest

from gpu_recommender.catalog import CATALOG, AcceleratorSpec, accelerator_options, highest_capacity
from gpu_recommender.errors import CatalogExhausted
from gpu_recommender.estimator import estimate_capacity
from gpu_recommender.selector import format_price_range, rank_candidates, select, units_needed
from gpu_recommender.workload import (
    CapacityEstimate,
    PrecisionMode,
    Provenance,
    WorkloadClass,
    WorkloadParams,
)

_BOTH = frozenset(WorkloadClass)
_INFERENCE = frozenset({WorkloadClass.INFERENCE})


def _spec(id, capacity_gb, price_low, compute, classes=_BOTH) -> AcceleratorSpec:
    return AcceleratorSpec(
        id=id,
        capacity_gb=capacity_gb,
        price_band_low=price_low,
        price_band_high=price_low * 2,
        compute_index=compute,
        supported_classes=classes,
        description=f"{id} test card.",
    )


def _catalog(*specs) -> MappingProxyType:
    return MappingProxyType({s.id: s for s in specs})


def _estimate(total_gb: float) -> CapacityEstimate:
    return CapacityEstimate(base_gb=total_gb, activation_gb=0.0, optimizer_gb=0.0, total_gb=total_gb)


def _params(**overrides) -> WorkloadParams:
    fields = {"parameter_count": 1, "batch_size": 1, "sequence_length": 1}
    fields.update(overrides)
    return WorkloadParams(**fields)


def _recommend(params: WorkloadParams):
    estimate = estimate_capacity(params)
    return estimate, select(estimate, params)


# ===================================================================
# Catalog
# ===================================================================


class TestCatalog:
    def test_is_read_only(self):
        with pytest.raises(TypeError):
            CATALOG["new"] = None

    def test_ids_match_keys(self):
        assert all(key == spec.id for key, spec in CATALOG.items())

    def test_price_bands_ordered(self):
        for spec in CATALOG.values():
            assert 0 < spec.price_band_low <= spec.price_band_high

    def test_every_class_covered(self):
        for workload_class in WorkloadClass:
            assert any(spec.supports(workload_class) for spec in CATALOG.values())

    def test_highest_capacity_first_listed_wins_tie(self):
        catalog = _catalog(_spec("a", 80, 10, 1), _spec("b", 80, 10, 1), _spec("c", 40, 10, 1))
        assert highest_capacity(catalog).id == "a"

    def test_options_in_listing_order(self):
        options = accelerator_options()
        assert [o["value"] for o in options] == list(CATALOG)
        assert all(o["description"] for o in options)


# ===================================================================
# Ranking
# ===================================================================


class TestRankCandidates:
    def test_fitting_entries_rank_first(self):
        catalog = _catalog(_spec("small", 24, 1000, 1), _spec("big", 80, 1000, 100))
        ranked = rank_candidates(50, WorkloadClass.TRAINING, catalog)
        assert [s.id for s in ranked] == ["big", "small"]

    def test_ratio_orders_within_group(self):
        catalog = _catalog(_spec("high", 24, 1000, 100), _spec("low", 24, 1000, 1))
        ranked = rank_candidates(10, WorkloadClass.TRAINING, catalog)
        assert [s.id for s in ranked] == ["low", "high"]

    def test_ties_keep_listing_order(self):
        catalog = _catalog(_spec("first", 24, 1000, 10), _spec("second", 24, 2000, 20))
        ranked = rank_candidates(10, WorkloadClass.TRAINING, catalog)
        assert [s.id for s in ranked] == ["first", "second"]

    def test_filters_by_class(self):
        catalog = _catalog(_spec("serve", 24, 1000, 1, _INFERENCE), _spec("train", 24, 1000, 5))
        ranked = rank_candidates(10, WorkloadClass.TRAINING, catalog)
        assert [s.id for s in ranked] == ["train"]

    def test_raises_when_class_unsupported(self):
        catalog = _catalog(_spec("serve", 24, 1000, 1, _INFERENCE))
        with pytest.raises(CatalogExhausted):
            rank_candidates(10, WorkloadClass.TRAINING, catalog)

    def test_largest_leads_when_nothing_fits(self):
        for workload_class in WorkloadClass:
            ranked = rank_candidates(1e9, workload_class)
            largest = max(s.capacity_gb for s in CATALOG.values() if s.supports(workload_class))
            assert ranked[0].capacity_gb == largest


# ===================================================================
# Selection
# ===================================================================


class TestUnitsAndPrice:
    @pytest.mark.parametrize(
        ("total", "capacity", "expected"),
        [(0.01, 24, 1), (24, 24, 1), (24.01, 24, 2), (100, 24, 5)],
    )
    def test_units_needed(self, total, capacity, expected):
        assert units_needed(total, capacity) == expected

    def test_price_range_scales_with_quantity(self):
        assert format_price_range(CATALOG["NVIDIA RTX 3090"], 2) == "¥20,000 - ¥30,000"


class TestSelect:
    def test_reference_scenario(self):
        params = _params(
            parameter_count=7000, batch_size=32, sequence_length=2048,
            precision=PrecisionMode.MIXED, extra_memory_gb=32,
        )
        estimate, rec = _recommend(params)
        fitting = [s for s in CATALOG.values() if s.capacity_gb >= estimate.total_gb]
        assert fitting == []
        chosen = CATALOG[rec.accelerator_id]
        assert chosen is highest_capacity()
        assert rec.quantity == math.ceil(estimate.total_gb / chosen.capacity_gb)
        assert rec.provenance is Provenance.RULE_BASED
        assert rec.fallback_reason is None

    @pytest.mark.parametrize(
        "overrides",
        [
            {},
            {"parameter_count": 7000, "precision": PrecisionMode.FP16},
            {"parameter_count": 13000, "batch_size": 2, "workload_class": WorkloadClass.INFERENCE},
            {"parameter_count": 70, "sequence_length": 4, "extra_memory_gb": 300},
        ],
    )
    def test_quantity_covers_requirement(self, overrides):
        estimate, rec = _recommend(_params(**overrides))
        capacity = CATALOG[rec.accelerator_id].capacity_gb
        assert rec.quantity == max(1, math.ceil(estimate.total_gb / capacity))
        assert rec.quantity * capacity >= estimate.total_gb

    def test_top_ranked_entry_selected(self):
        params = _params(parameter_count=500, workload_class=WorkloadClass.INFERENCE)
        estimate, rec = _recommend(params)
        ranked = rank_candidates(estimate.total_gb, WorkloadClass.INFERENCE)
        assert rec.accelerator_id == ranked[0].id
        assert rec.alternative_accelerator_ids == [s.id for s in ranked[1:4]]

    @pytest.mark.parametrize("preferred", ["NVIDIA RTX 3090", "NVIDIA L40S", "NVIDIA H100"])
    def test_preferred_is_honored(self, preferred):
        params = _params(parameter_count=7000, precision=PrecisionMode.FP16,
                         preferred_accelerator_id=preferred)
        estimate, rec = _recommend(params)
        assert rec.accelerator_id == preferred
        assert rec.quantity == math.ceil(estimate.total_gb / CATALOG[preferred].capacity_gb)
        assert rec.justification_text.startswith(f"You explicitly chose {preferred}")
        assert preferred not in rec.alternative_accelerator_ids

    def test_preferred_unsupported_class_is_rejected(self):
        params = _params(preferred_accelerator_id="NVIDIA T4")
        _, rec = _recommend(params)
        assert rec.accelerator_id != "NVIDIA T4"
        assert "NVIDIA T4 does not support training workloads" in rec.justification_text

    def test_preferred_unknown_is_rejected(self):
        params = _params(preferred_accelerator_id="Imaginary GPU")
        _, rec = _recommend(params)
        assert rec.accelerator_id in CATALOG
        assert "Imaginary GPU is not in the catalog" in rec.justification_text

    def test_alternatives_bounded_and_exclusive(self):
        for workload_class in WorkloadClass:
            _, rec = _recommend(_params(workload_class=workload_class))
            alternatives = rec.alternative_accelerator_ids
            assert len(alternatives) <= 3
            assert rec.accelerator_id not in alternatives
            assert len(set(alternatives)) == len(alternatives)

    def test_distributed_training_needs_two_units(self):
        _, rec = _recommend(_params(distributed=True))
        assert rec.quantity == 2
        assert "distributed training" in rec.justification_text

    def test_distributed_inference_keeps_one_unit(self):
        _, rec = _recommend(_params(distributed=True, workload_class=WorkloadClass.INFERENCE))
        assert rec.quantity == 1

    def test_price_and_memory_text(self):
        params = _params(distributed=True, preferred_accelerator_id="NVIDIA RTX 3090")
        estimate, rec = _recommend(params)
        assert rec.price_range_text == "¥20,000 - ¥30,000"
        assert rec.estimated_capacity_text == f"{estimate.total_gb:.2f} GB"
        assert rec.estimated_system_memory_text == f"{math.ceil(estimate.total_gb * 1.5)} GB"

    def test_fp32_has_no_precision_note(self):
        _, fp32 = _recommend(_params(precision=PrecisionMode.FP32))
        _, int8 = _recommend(_params(precision=PrecisionMode.INT8))
        assert "INT8" not in fp32.justification_text
        assert "FP16" not in fp32.justification_text
        assert "INT8 quantization" in int8.justification_text

    def test_inference_multi_unit_notes(self):
        params = _params(parameter_count=7000, precision=PrecisionMode.FP16,
                         workload_class=WorkloadClass.INFERENCE,
                         preferred_accelerator_id="NVIDIA RTX 3090")
        _, rec = _recommend(params)
        assert rec.quantity == 2
        assert "in parallel" in rec.justification_text
        assert "concurrent inference requests" in rec.justification_text

    def test_single_unit_has_no_multi_unit_note(self):
        _, rec = _recommend(_params(workload_class=WorkloadClass.INFERENCE))
        assert rec.quantity == 1
        assert "units are recommended" not in rec.justification_text
        assert "concurrent inference requests" not in rec.justification_text

    def test_justification_is_deterministic(self):
        params = _params(parameter_count=7000, precision=PrecisionMode.MIXED)
        assert _recommend(params)[1].justification_text == _recommend(params)[1].justification_text

    def test_catalog_exhausted_falls_back_to_largest(self):
        catalog = _catalog(
            _spec("serve-small", 24, 1000, 1, _INFERENCE),
            _spec("serve-big", 96, 5000, 10, _INFERENCE),
        )
        rec = select(_estimate(200), _params(), catalog)
        assert rec.accelerator_id == "serve-big"
        assert rec.quantity == 3
        assert rec.alternative_accelerator_ids == []
        assert "exceed catalog coverage" in rec.justification_text

    def test_automatic_choice_explains_ranking(self):
        params = _params(parameter_count=340, workload_class=WorkloadClass.INFERENCE)
        _, rec = _recommend(params)
        assert rec.justification_text.startswith(
            f"{rec.accelerator_id} ranks first among inference accelerators"
        )
        assert "ascending compute index per unit of price" in rec.justification_text

    def test_preferred_choice_has_no_ranking_note(self):
        _, rec = _recommend(_params(preferred_accelerator_id="NVIDIA RTX 3090"))
        assert "ranks first" not in rec.justification_text
