"""Tests for MarkerService - composition and layer marker timelines."""

from __future__ import annotations

import pytest

from src.aehost.lookups import NO_ACTIVE_COMP
from src.aehost.project_model import Composition, Layer, Project
from src.aehost.services.marker_service import MarkerService


@pytest.fixture
def project() -> Project:
    project = Project()
    comp = Composition(name="Edit", duration=30.0)
    comp.add_layer(Layer(name="Plate"))
    comp.add_layer(Layer(name="Title", layer_type="text"))
    comp.time = 4.0
    project.add_comp(comp)
    return project


@pytest.fixture
def markers(project: Project) -> MarkerService:
    return MarkerService(project)


def _comp_markers(markers: MarkerService):
    return markers.get_comp_markers({})["markers"]


# -- Composition markers ---------------------------------------------------------------


def test_add_then_list_comp_marker(markers: MarkerService) -> None:
    added = markers.add_comp_marker({"time": 2, "comment": "intro", "chapter": "Act 1", "duration": 1.5})

    assert added == {"success": True, "time": 2, "comment": "intro"}
    assert _comp_markers(markers) == [
        {"index": 1, "time": 2.0, "comment": "intro", "chapter": "Act 1", "duration": 1.5}
    ]


def test_add_comp_marker_defaults_to_current_time(markers: MarkerService) -> None:
    added = markers.add_comp_marker({})

    assert added["time"] == 4.0
    assert added["comment"] == ""


def test_markers_are_kept_in_time_order(markers: MarkerService) -> None:
    for time, comment in ((8, "outro"), (2, "intro"), (5, "middle")):
        markers.add_comp_marker({"time": time, "comment": comment})

    assert [m["comment"] for m in _comp_markers(markers)] == ["intro", "middle", "outro"]
    assert [m["index"] for m in _comp_markers(markers)] == [1, 2, 3]


def test_marker_at_same_time_replaces_existing(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 2, "comment": "first"})
    markers.add_comp_marker({"time": 2, "comment": "second"})

    assert [m["comment"] for m in _comp_markers(markers)] == ["second"]


def test_negative_time_is_reported(markers: MarkerService) -> None:
    result = markers.add_comp_marker({"time": -1})

    assert result["success"] is False
    assert result["error"].startswith("Failed to add comp marker:")


def test_no_active_comp() -> None:
    service = MarkerService(Project())

    for result in (service.add_comp_marker({"time": 1}), service.get_comp_markers({}), service.remove_marker({"markerIndex": 1})):
        assert result == {"success": False, "error": NO_ACTIVE_COMP}


# -- Removal ---------------------------------------------------------------------------


def test_remove_by_index(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 1, "comment": "a"})
    markers.add_comp_marker({"time": 3, "comment": "b"})

    assert markers.remove_marker({"markerIndex": 1}) == {"success": True, "removed": 1}
    assert [m["comment"] for m in _comp_markers(markers)] == ["b"]


@pytest.mark.parametrize("index, removed", [(1, 1), (1.0, 1), (2.0, 2)])
def test_remove_accepts_integral_indices(markers: MarkerService, index, removed: int) -> None:
    markers.add_comp_marker({"time": 1, "comment": "a"})
    markers.add_comp_marker({"time": 3, "comment": "b"})

    assert markers.remove_marker({"markerIndex": index}) == {"success": True, "removed": removed}
    assert len(_comp_markers(markers)) == 1


def test_remove_by_time_picks_nearest(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 1, "comment": "a"})
    markers.add_comp_marker({"time": 3, "comment": "b"})

    assert markers.remove_marker({"time": 2.6}) == {"success": True, "removed": 2}
    assert [m["comment"] for m in _comp_markers(markers)] == ["a"]


@pytest.mark.parametrize("index", [0, 3, -1, 1.5, 3.0, "1", True])
def test_remove_with_invalid_index_leaves_markers_untouched(markers: MarkerService, index) -> None:
    markers.add_comp_marker({"time": 1, "comment": "a"})
    markers.add_comp_marker({"time": 3, "comment": "b"})
    before = _comp_markers(markers)

    result = markers.remove_marker({"markerIndex": index})

    assert result == {"success": False, "error": "Invalid marker index"}
    assert _comp_markers(markers) == before


def test_remove_without_index_or_time(markers: MarkerService) -> None:
    assert markers.remove_marker({}) == {"success": False, "error": "Must specify markerIndex or time"}


def test_remove_by_time_on_empty_track(markers: MarkerService) -> None:
    assert markers.remove_marker({"time": 1}) == {"success": False, "error": "Invalid marker index"}


# -- Updates ---------------------------------------------------------------------------


def test_update_overlays_only_supplied_fields(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 2, "comment": "intro", "chapter": "Act 1", "url": "https://example.com"})

    result = markers.update_marker({"markerIndex": 1, "comment": "opening"})

    assert result == {"success": True, "updated": 1}
    (marker,) = _comp_markers(markers)
    assert marker["comment"] == "opening"
    assert marker["chapter"] == "Act 1"
    assert marker["time"] == 2.0


def test_update_without_fields_is_a_noop_success(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 2, "comment": "intro", "duration": 3})
    before = _comp_markers(markers)

    assert markers.update_marker({"markerIndex": 1}) == {"success": True, "updated": 1}
    assert _comp_markers(markers) == before


def test_update_accepts_integral_float_index(markers: MarkerService) -> None:
    markers.add_comp_marker({"time": 2, "comment": "intro"})

    assert markers.update_marker({"markerIndex": 1.0, "comment": "opening"}) == {"success": True, "updated": 1}
    assert _comp_markers(markers)[0]["comment"] == "opening"


@pytest.mark.parametrize("params", [{}, {"markerIndex": 0}, {"markerIndex": 2}, {"markerIndex": 1.5}, {"markerIndex": False}])
def test_update_rejects_invalid_index(markers: MarkerService, params) -> None:
    markers.add_comp_marker({"time": 2, "comment": "intro"})

    assert markers.update_marker(params) == {"success": False, "error": "Invalid marker index"}


# -- Layer markers ---------------------------------------------------------------------


def test_layer_markers_are_separate_from_comp_markers(markers: MarkerService) -> None:
    added = markers.add_layer_marker({"layerIndex": 2, "time": 1, "comment": "hit"})

    assert added == {"success": True, "layer": 2, "time": 1, "comment": "hit"}
    assert markers.get_layer_markers({"layerIndex": 2})["markers"] == [{"index": 1, "time": 1.0, "comment": "hit"}]
    assert markers.get_layer_markers({"layerIndex": 1})["markers"] == []
    assert _comp_markers(markers) == []


def test_layer_marker_bad_layer_index(markers: MarkerService) -> None:
    assert markers.add_layer_marker({"layerIndex": 7, "time": 1}) == {
        "success": False,
        "error": "Layer index out of range: 7",
    }


def test_update_and_remove_on_layer_target(markers: MarkerService) -> None:
    markers.add_layer_marker({"layerIndex": 1, "time": 1, "comment": "a"})

    updated = markers.update_marker({"target": "layer", "layerIndex": 1, "markerIndex": 1, "comment": "b"})
    listed = markers.get_layer_markers({"layerIndex": 1})["markers"]
    removed = markers.remove_marker({"target": "layer", "layerIndex": 1, "markerIndex": 1})

    assert updated["success"] is True
    assert listed[0]["comment"] == "b"
    assert removed == {"success": True, "removed": 1}
    assert markers.get_layer_markers({"layerIndex": 1})["markers"] == []


# -- Bulk insert -----------------------------------------------------------------------


def test_add_markers_from_array(markers: MarkerService) -> None:
    result = markers.add_markers_from_array(
        {"markers": [{"time": 3, "comment": "b"}, {"time": 1, "comment": "a", "duration": 0.5}]}
    )

    assert result == {"success": True, "addedCount": 2}
    assert [(m["time"], m["comment"]) for m in _comp_markers(markers)] == [(1.0, "a"), (3.0, "b")]


def test_add_markers_from_array_requires_markers(markers: MarkerService) -> None:
    assert markers.add_markers_from_array({"markers": []}) == {"success": False, "error": "No markers provided"}
    assert markers.add_markers_from_array({}) == {"success": False, "error": "No markers provided"}


def test_add_markers_from_array_stops_at_first_bad_item(markers: MarkerService) -> None:
    result = markers.add_markers_from_array({"markers": [{"time": 1, "comment": "a"}, {"comment": "no time"}]})

    assert result["success"] is False
    assert result["error"] == "Failed to add markers from array: marker 2 has no time"
    assert [m["comment"] for m in _comp_markers(markers)] == ["a"]
