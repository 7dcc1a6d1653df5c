"""
Tests for segments, networks and emission aggregation.
"""

import pytest
from shapely.geometry import box

from emission_raster import Bounds, LineSegment, Network, aggregate_emissions, merge_species


def test_segment_length():
    """Test that the length defaults to the endpoint distance."""
    segment = LineSegment(1, (0, 0), (3, 4))

    assert segment.length == 5.0
    assert segment.from_xy == (0.0, 0.0)
    assert not segment.is_degenerate
    assert LineSegment(2, (0, 0), (3, 4), length=7.5).length == 7.5
    assert LineSegment(3, (1, 1), (1, 1)).is_degenerate
    assert segment.to_line_string().length == pytest.approx(5.0)


def test_network_access():
    """Test lookup, iteration and bounds."""
    network = Network.from_segments([
        LineSegment("a", (0.0, 0.0), (10.0, 5.0)),
        LineSegment("b", (-5.0, 2.0), (3.0, 20.0), lanes=2),
    ])

    assert len(network) == 2
    assert "a" in network
    assert network["b"].lanes == 2
    assert network.get("c") is None
    assert {s.id for s in network} == {"a", "b"}
    assert network.bounds() == Bounds(-5.0, 0.0, 10.0, 20.0)

    with pytest.raises(KeyError):
        network["c"]
    with pytest.raises(ValueError):
        Network.from_segments([LineSegment("a", (0, 0), (1, 1)), LineSegment("a", (1, 1), (2, 2))])
    with pytest.raises(ValueError):
        Network().bounds()


def test_network_within():
    """Test cutting a network to a study area."""
    network = Network.from_segments([
        LineSegment("inside", (1.0, 1.0), (5.0, 5.0)),
        LineSegment("crossing", (5.0, 5.0), (50.0, 5.0)),
        LineSegment("outside", (20.0, 20.0), (30.0, 30.0)),
    ])

    result = network.within(box(0.0, 0.0, 10.0, 10.0))

    assert set(result.ids()) == {"inside", "crossing"}
    assert set(network.filter(lambda s: s.length > 10).ids()) == {"crossing", "outside"}


def test_aggregate_emissions():
    """Test binning and summing of events."""
    events = [
        (10.0, "a", {"NO2": 1.0, "PM": 0.5}),
        (20.0, "a", {"NO2": 2.0}),
        (30.0, "b", {"NO2": 4.0}),
        (905.0, "a", {"NO2": 8.0}),
    ]

    series = aggregate_emissions(events, 900.0)

    bins = list(series.bins())
    assert [b.start_time for b in bins] == [0.0, 900.0]
    assert bins[0].value == {"NO2": {"a": 3.0, "b": 4.0}, "PM": {"a": 0.5}}
    assert bins[1].value == {"NO2": {"a": 8.0}}


def test_aggregate_emissions_filters_and_scales():
    """Test species and network filters and the scale factor."""
    network = Network.from_segments([LineSegment("a", (0.0, 0.0), (10.0, 0.0))])
    events = [
        (10.0, "a", {"NO2": 1.0, "PM": 0.5}),
        (20.0, "unknown", {"NO2": 2.0}),
    ]

    series = aggregate_emissions(events, 60.0, species=["NO2"], scale_factor=10.0,
                                 network=network)

    assert [b.value for b in series.bins()] == [{"NO2": {"a": 10.0}}]


def test_merge_species():
    """Test that species are added per segment."""
    series = aggregate_emissions([
        (0.0, "a", {"PM": 1.0, "PM_non_exhaust": 2.0, "NO2": 5.0}),
        (0.0, "b", {"PM_non_exhaust": 3.0}),
    ], 60.0)

    merged = merge_species(series, ["PM", "PM_non_exhaust"])

    assert next(merged.bins()).value == {"a": 3.0, "b": 3.0}


def test_merge_species_with_empty_bin():
    """Test that bins without emissions are passed through."""
    series = aggregate_emissions([(70.0, "a", {"PM": 1.0})], 60.0)
    series.bin(0.0)

    merged = merge_species(series, ["PM"])

    assert [(b.start_time, b.value) for b in merged.bins()] == [(0.0, None), (60.0, {"a": 1.0})]
