"""
Unit tests for the data schemas.

Tests cover:
- Observation validity rules
- ObservationBatch helpers
- BeaconAnchor / Location construction and immutability
- PositionEstimate validation and no-fix creation
"""

import pytest

from ips_core.proto import (
    Observation,
    ObservationBatch,
    BeaconAnchor,
    Location,
    PositionEstimate,
    FixType,
    NoFixReason,
    create_no_fix,
)


# =============================================================================
# Test Observation
# =============================================================================


class TestObservation:
    """Tests for Observation."""

    def test_valid_observation(self):
        obs = Observation("b1", -67.0, 1000)
        assert obs.is_valid

    @pytest.mark.parametrize("beacon_id,rssi,timestamp_ms", [
        ("", -67.0, 1000),            # empty id
        ("b1", float("nan"), 1000),   # non-finite
        ("b1", float("-inf"), 1000),
        ("b1", 5.0, 1000),            # positive RSSI
        ("b1", 0.0, 1000),
        ("b1", -130.0, 1000),         # below BLE range
        ("b1", -67.0, -1),            # negative timestamp
        ("b1", "strong", 1000),       # not a number
    ])
    def test_malformed_observation_is_invalid(self, beacon_id, rssi, timestamp_ms):
        """Malformed values never raise, they are just invalid."""
        obs = Observation(beacon_id, rssi, timestamp_ms)
        assert not obs.is_valid

    def test_observation_is_immutable(self):
        obs = Observation("b1", -67.0, 1000)
        with pytest.raises(AttributeError):
            obs.rssi = -50.0


class TestObservationBatch:
    """Tests for ObservationBatch."""

    def test_empty_batch(self):
        batch = ObservationBatch()
        assert batch.is_empty
        assert len(batch) == 0
        assert batch.anchor_ids == []
        assert batch.t_start_ms is None
        assert batch.t_end_ms is None

    def test_batch_helpers(self):
        batch = ObservationBatch((
            Observation("b2", -70.0, 1200),
            Observation("b1", -60.0, 1000),
            Observation("b2", -72.0, 1500),
        ))

        assert batch.anchor_ids == ["b1", "b2"]
        assert batch.t_start_ms == 1000
        assert batch.t_end_ms == 1500
        assert batch.rssi_by_anchor() == {"b2": [-70.0, -72.0], "b1": [-60.0]}
        assert [o.beacon_id for o in batch] == ["b2", "b1", "b2"]

    def test_helpers_skip_malformed(self):
        batch = ObservationBatch((
            Observation("b1", -60.0, 1000),
            Observation("b2", -61.0, None),
            Observation(None, -62.0, 5000),
            Observation("b3", "weak", 7000),
        ))

        assert len(batch) == 4
        assert batch.valid_observations == (Observation("b1", -60.0, 1000),)
        assert batch.anchor_ids == ["b1"]
        assert batch.t_start_ms == 1000
        assert batch.t_end_ms == 1000
        assert batch.rssi_by_anchor() == {"b1": [-60.0]}

    def test_no_valid_timestamps(self):
        batch = ObservationBatch((Observation("b1", -60.0, "garbage"),))

        assert not batch.is_empty
        assert batch.t_start_ms is None
        assert batch.t_end_ms is None


# =============================================================================
# Test Location
# =============================================================================


class TestLocation:
    """Tests for BeaconAnchor and Location."""

    def test_anchor_map(self, triangle_location):
        anchors = triangle_location.anchor_map
        assert set(anchors) == {"A0", "A1", "A2"}
        assert anchors["A1"].position == (10.0, 0.0)
        assert triangle_location.has_anchors
        assert triangle_location.has_boundary

    def test_anchor_map_is_read_only(self, triangle_location):
        with pytest.raises(TypeError):
            triangle_location.anchor_map["A9"] = BeaconAnchor("A9", 1.0, 1.0)

    def test_duplicate_anchor_ids_rejected(self):
        with pytest.raises(ValueError, match="Duplicate"):
            Location("dup", anchors=(BeaconAnchor("a", 0, 0), BeaconAnchor("a", 1, 1)))

    def test_short_boundary_rejected(self):
        with pytest.raises(ValueError, match="at least 3"):
            Location("bad", boundary=((0, 0), (1, 1)))

    def test_empty_anchor_id_rejected(self):
        with pytest.raises(ValueError):
            BeaconAnchor("", 0.0, 0.0)

    def test_empty_location(self):
        empty = Location.empty()
        assert not empty.has_anchors
        assert not empty.has_boundary
        assert len(empty.anchor_map) == 0

    def test_boundary_normalized_to_tuples(self):
        location = Location("l", boundary=[[0, 0], [1, 0], [1, 1]])
        assert location.boundary == ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0))
        # Frozen and hashable
        assert hash(location) == hash(Location("l", boundary=((0, 0), (1, 0), (1, 1))))


# =============================================================================
# Test PositionEstimate
# =============================================================================


class TestPositionEstimate:
    """Tests for PositionEstimate."""

    def test_create_valid_estimate(self):
        estimate = PositionEstimate(
            t_solve_ms=1000,
            fix_type=FixType.FIX_2D,
            position=(5.0, 3.0),
            error_radius_m=1.2,
            inside_location=True,
            num_anchors_used=3,
            anchor_ids=("A0", "A1", "A2"),
            residual_m=0.3,
        )

        assert estimate.has_valid_fix
        assert estimate.x == 5.0
        assert estimate.y == 3.0

        d = estimate.to_dict()
        assert d["fix_type"] == "FIX_2D"
        assert d["no_fix_reason"] is None

    def test_negative_error_radius_raises(self):
        with pytest.raises(ValueError, match="negative"):
            PositionEstimate(1000, FixType.FIX_2D, (0, 0), -1.0, True, 3, (), 0.0)

    def test_no_fix_requires_reason(self):
        with pytest.raises(ValueError, match="no_fix_reason"):
            PositionEstimate(1000, FixType.NO_FIX, (0, 0), 0.0, False, 0, (), 0.0)

    def test_no_fix_creation(self):
        no_fix = create_no_fix(1234, NoFixReason.INSUFFICIENT_ANCHORS)

        assert not no_fix.has_valid_fix
        assert no_fix.fix_type == FixType.NO_FIX
        assert no_fix.t_solve_ms == 1234
        assert not no_fix.inside_location
        assert no_fix.to_dict()["no_fix_reason"] == "insufficient_anchors"

    def test_estimate_is_immutable(self):
        no_fix = create_no_fix(0, NoFixReason.EMPTY_BATCH)
        with pytest.raises(AttributeError):
            no_fix.position = (1.0, 1.0)
