"""Donor Journey — stage resolution over the organization's journey graph."""

from donor_crm.core.donor_journey import resolve_stage

JOURNEY = {
    "nodes": [
        {"id": "n1", "label": "Prospect", "properties": {
            "description": "Not yet given", "actions": ["Send intro"],
        }},
        {"id": "n2", "label": "First Gift", "properties": {"description": "Gave once"}},
    ],
    "edges": [
        {"source": "n1", "target": "n2", "label": "Ask for first gift"},
        {"source": "n2", "target": "n1", "label": "Lapsed"},
    ],
}


def test_missing_journey():
    assert resolve_stage(None, "Prospect").stage_name == "No Journey Defined"
    assert resolve_stage({"nodes": []}, None).stage_name == "No Journey Defined"


def test_no_nodes():
    assert resolve_stage({"nodes": [], "edges": []}, None).stage_name == "No Stages Defined"


def test_known_stage_collects_actions_and_edge_labels():
    info = resolve_stage(JOURNEY, "Prospect")
    assert info.stage_name == "Prospect"
    assert info.stage_explanation == "Not yet given"
    assert info.possible_actions == ["Send intro", "Ask for first gift"]


def test_unknown_stage_falls_back_to_first_node():
    info = resolve_stage(JOURNEY, "Major Donor")
    assert info.stage_name == "Prospect"


def test_to_dict_uses_snake_case_keys():
    data = resolve_stage(JOURNEY, "First Gift").to_dict()
    assert data == {
        "stage_name": "First Gift",
        "stage_explanation": "Gave once",
        "possible_actions": ["Lapsed"],
    }
