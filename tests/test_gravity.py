"""Tests for the shared gravity accumulator."""

import math

import numpy as np
import pytest

from popgravity.bands import adaptive_boundaries, bands_from_boundaries
from popgravity.gravity import accumulate, accumulate_arrays
from popgravity.models import CellSample


def planar(sample):
    return sample.value, sample.pop


def grid_5x5(center_pop=100.0):
    """Unit-spaced 5x5 grid around the origin; only the centre is populated."""
    samples = []
    for r in range(-2, 3):
        for c in range(-2, 3):
            pop = center_pop if (r, c) == (0, 0) else 0.0
            samples.append(CellSample(lat=r, lng=c, pop=pop, value=math.hypot(r, c)))
    return samples


def run(samples, limit, exponent=2.0, min_clamp=0.1):
    bands = bands_from_boundaries(adaptive_boundaries(limit))
    return accumulate(samples, bands, limit=limit, exponent=exponent, min_clamp=min_clamp, extract=planar)


class TestScenarios:
    def test_single_populated_centre(self):
        res = run(grid_5x5(), limit=2)
        assert res.total_population == pytest.approx(100.0)
        assert res.raw_sum == pytest.approx(10000.0)
        assert res.weight_mass == pytest.approx(1 / 0.01)
        assert res.normalized == pytest.approx(100.0)
        assert len(res.bands) == 2
        assert res.bands[0].population == pytest.approx(100.0)
        assert res.bands[1].population == 0.0
        assert res.cells_examined == 25
        assert res.cells_included == 1

    @pytest.mark.parametrize("exponent", [0.1, 1.0, 1.5, 3.0])
    def test_anchor_sample_weight_is_clamped(self, exponent):
        res = run([CellSample(0, 0, 1.0, 0.0)], limit=5, exponent=exponent)
        expected = 1.0 / 0.1 ** exponent
        assert math.isfinite(res.raw_sum)
        assert res.raw_sum == pytest.approx(expected)
        assert res.weight_mass == pytest.approx(expected)


class TestFiltering:
    def test_malformed_samples_are_excluded(self):
        samples = [
            CellSample(0, 0, 10.0, 1.5),
            CellSample(0, 0, -5.0, 1.5),
            CellSample(0, 0, float("nan"), 1.5),
            CellSample(0, 0, 0.0, 1.5),
            CellSample(0, 0, 10.0, None),
            CellSample(0, 0, 10.0, 3.01),
        ]
        res = run(samples, limit=3)
        assert res.total_population == pytest.approx(10.0)
        assert res.cells_included == 1
        assert res.cells_examined == 6
        assert sum(b.cell_count for b in res.bands) == 1

    def test_negative_value_is_excluded_everywhere(self):
        res = run([CellSample(0, 0, 10.0, -0.5), CellSample(0, 0, 5.0, 1.5)], limit=3)
        assert res.total_population == pytest.approx(5.0)
        assert res.weight_mass == pytest.approx(1 / 1.5 ** 2)
        assert res.cells_included == 1
        assert sum(b.population for b in res.bands) == pytest.approx(res.total_population)
        assert sum(b.weight_mass for b in res.bands) == pytest.approx(res.weight_mass)

    def test_sample_at_limit_lands_in_last_band(self):
        res = run([CellSample(0, 0, 7.0, 3.0)], limit=3)
        assert res.bands[-1].population == pytest.approx(7.0)
        assert res.total_population == pytest.approx(7.0)

    def test_boundary_value_goes_to_upper_band(self):
        res = run([CellSample(0, 0, 7.0, 1.0)], limit=3)
        assert res.bands[0].population == 0.0
        assert res.bands[1].population == pytest.approx(7.0)


class TestConservation:
    @pytest.fixture
    def random_samples(self):
        rng = np.random.default_rng(7)
        values = rng.uniform(0, 40, 500)
        pops = rng.uniform(-10, 1000, 500)
        return [CellSample(0, 0, float(p), float(v)) for v, p in zip(values, pops)]

    def test_conservation(self, random_samples):
        res = run(random_samples, limit=32, exponent=1.3)
        assert sum(b.population for b in res.bands) == pytest.approx(res.total_population)
        assert sum(b.weighted_contribution for b in res.bands) == pytest.approx(res.raw_sum)
        assert sum(b.weight_mass for b in res.bands) == pytest.approx(res.weight_mass)
        assert sum(b.cell_count for b in res.bands) == res.cells_included

    def test_normalized_is_ratio(self, random_samples):
        res = run(random_samples, limit=32)
        assert res.normalized == pytest.approx(res.raw_sum / res.weight_mass)

    def test_no_live_samples_normalizes_to_zero(self):
        res = run([CellSample(0, 0, 0.0, 1.0), CellSample(0, 0, 5.0, 99.0)], limit=10)
        assert res.weight_mass == 0.0
        assert res.normalized == 0.0
        assert res.total_population == 0.0
        assert all(b.population == 0.0 for b in res.bands)

    def test_repeat_runs_are_identical(self, random_samples):
        a = run(random_samples, limit=32, exponent=2.2)
        b = run(random_samples, limit=32, exponent=2.2)
        assert a.bands == b.bands
        assert (a.total_population, a.raw_sum, a.weight_mass) == (b.total_population, b.raw_sum, b.weight_mass)


class TestAreas:
    def test_area_and_density(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        res = accumulate_arrays(
            [0.5, 0.5, 1.5], [10.0, 20.0, 0.0], bands,
            limit=2, exponent=2, min_clamp=0.1, areas=[2.0, 2.0, 2.0],
        )
        assert res.bands[0].area_km2 == pytest.approx(4.0)
        assert res.bands[0].density == pytest.approx(30.0 / 4.0)
        # unpopulated cells still count as surface
        assert res.bands[1].area_km2 == pytest.approx(2.0)
        assert res.bands[1].density == 0.0
        assert res.bands[1].cell_count == 0

    def test_grid_shaped_inputs(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        values = np.array([[0.5, 1.5], [0.5, 9.0]])
        pops = np.array([[10.0, 0.0], [20.0, 5.0]])
        areas = np.full((2, 2), 2.0)
        res = accumulate_arrays(values, pops, bands, limit=2, exponent=2, min_clamp=0.1, areas=areas)
        assert res.cells_examined == 4
        assert res.total_population == pytest.approx(30.0)
        assert res.bands[0].area_km2 == pytest.approx(4.0)
        assert res.bands[1].area_km2 == pytest.approx(2.0)

    def test_scalar_area_applies_to_every_cell(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        res = accumulate_arrays([0.5, 0.7], [1.0, 1.0], bands, limit=2, exponent=2, min_clamp=0.1, areas=1.5)
        assert res.bands[0].area_km2 == pytest.approx(3.0)

    def test_area_size_mismatch(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        with pytest.raises(ValueError):
            accumulate_arrays([0.5, 0.7], [1.0, 1.0], bands, limit=2, exponent=2, min_clamp=0.1, areas=[1.0])

    def test_empty_band_density_divides_by_one(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        res = accumulate_arrays([0.5], [3.0], bands, limit=2, exponent=2, min_clamp=0.1, areas=[0.25])
        assert res.bands[0].density == pytest.approx(3.0)
        assert res.bands[1].area_km2 == 0.0
        assert res.bands[1].density == 0.0

    def test_no_areas_means_no_density(self):
        bands = bands_from_boundaries(adaptive_boundaries(2))
        res = accumulate_arrays([0.5], [1.0], bands, limit=2, exponent=2, min_clamp=0.1)
        assert res.bands[0].area_km2 is None
        assert "density" not in res.bands[0].to_dict()

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            accumulate_arrays([1.0, 2.0], [1.0], [], limit=2, exponent=2, min_clamp=0.1)


def test_display_rounding_keeps_internal_precision():
    res = run([CellSample(0, 0, 10.4, 1.234)], limit=3)
    d = res.to_dict()
    assert d["totalPopulation"] == 10
    assert res.total_population == pytest.approx(10.4)
    assert d["rawSum"] == round(10.4 / 1.234 ** 2, 2)
