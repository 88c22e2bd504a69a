"""
Unit tests for the RSSI to distance models.
"""

import pytest

from ips_core.localization import RssiModel, RssiModelType


class TestLogDistanceModel:
    """Tests for the log-distance path loss model."""

    def test_reference_distance(self, rssi_model):
        # tx power is the RSSI at 1 m
        assert rssi_model.to_distance(-59.0) == pytest.approx(1.0)

    def test_known_values(self, rssi_model):
        # n = 2: every 20 dB is a factor of 10 in distance
        assert rssi_model.to_distance(-79.0) == pytest.approx(10.0)
        assert rssi_model.to_distance(-65.0206) == pytest.approx(2.0, rel=1e-3)

    def test_monotonic_decreasing(self, rssi_model):
        distances = [rssi_model.to_distance(r) for r in range(-100, -30, 5)]
        assert all(a >= b for a, b in zip(distances, distances[1:]))

    def test_clamped(self, rssi_model):
        assert rssi_model.to_distance(-10.0) == rssi_model.min_distance_m
        assert rssi_model.to_distance(-127.0) == rssi_model.max_distance_m

    def test_inverse(self, rssi_model):
        for d in (0.5, 1.0, 3.7, 12.0, 40.0):
            assert rssi_model.to_distance(rssi_model.to_rssi(d)) == pytest.approx(d)


class TestLinearModel:
    """Tests for the linear fit model."""

    @pytest.fixture
    def linear_model(self):
        return RssiModel(model_type=RssiModelType.LINEAR)

    def test_known_value(self, linear_model):
        # d = (rssi + b) / a with a = -2.48, b = 67.81
        assert linear_model.to_distance(-90.0) == pytest.approx(22.19 / 2.48)

    def test_monotonic_decreasing(self, linear_model):
        distances = [linear_model.to_distance(r) for r in range(-100, -60, 2)]
        assert all(a >= b for a, b in zip(distances, distances[1:]))

    def test_strong_signal_clamped_to_min(self, linear_model):
        assert linear_model.to_distance(-40.0) == linear_model.min_distance_m

    def test_inverse(self, linear_model):
        for d in (1.0, 5.0, 15.0):
            assert linear_model.to_distance(linear_model.to_rssi(d)) == pytest.approx(d)


class TestModelValidation:
    """Invalid calibrations are rejected at construction."""

    @pytest.mark.parametrize("kwargs", [
        {"path_loss_exponent": 0.0},
        {"path_loss_exponent": -2.0},
        {"linear_a": 1.0},
        {"min_distance_m": 0.0},
        {"min_distance_m": 5.0, "max_distance_m": 5.0},
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            RssiModel(**kwargs)

    def test_model_type_from_config_string(self):
        assert RssiModelType("linear") is RssiModelType.LINEAR
