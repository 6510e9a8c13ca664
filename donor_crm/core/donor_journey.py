"""Donor Journey — resolves a donor's stage within the organization's journey graph.

Invariants:
    - Pure: takes the journey dict and the donor's current stage name
    - Missing/malformed journey → "No Journey Defined"; empty node list → "No Stages Defined"
    - Unknown or unset stage falls back to the first node
    - possible_actions = node actions followed by labels of edges leaving the node
"""

from dataclasses import dataclass, field


@dataclass
class StageInfo:
    stage_name: str
    stage_explanation: str
    possible_actions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "stage_name": self.stage_name,
            "stage_explanation": self.stage_explanation,
            "possible_actions": self.possible_actions,
        }


NO_JOURNEY = StageInfo(
    "No Journey Defined", "The organization has not defined a donor journey.",
)
NO_STAGES = StageInfo(
    "No Stages Defined", "No stages have been defined in the donor journey.",
)


def resolve_stage(journey: dict | None, current_stage_name: str | None) -> StageInfo:
    if not isinstance(journey, dict) or "nodes" not in journey or "edges" not in journey:
        return StageInfo(NO_JOURNEY.stage_name, NO_JOURNEY.stage_explanation)

    nodes = journey["nodes"] or []
    edges = journey["edges"] or []
    node = next((n for n in nodes if n.get("label") == current_stage_name), None)
    if node is None:
        if not nodes:
            return StageInfo(NO_STAGES.stage_name, NO_STAGES.stage_explanation)
        node = nodes[0]

    properties = node.get("properties") or {}
    actions = list(properties.get("actions") or [])
    actions.extend(e.get("label", "") for e in edges if e.get("source") == node.get("id"))
    return StageInfo(
        stage_name=node.get("label", ""),
        stage_explanation=properties.get("description", ""),
        possible_actions=actions,
    )
