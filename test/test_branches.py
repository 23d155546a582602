import pytest

from graphscript.compiler.branches import (
    branch_label,
    is_default_branch,
    normalize_branch_value,
    raw_branch_value,
    resolve_branches,
)
from graphscript.compiler.ir import WorkflowEdge, WorkflowGraph
from graphscript.compiler.scheduler import build_edge_index


def condition_graph(*edges):
    targets = [f"t{i}" for i in range(len(edges))]
    return WorkflowGraph.from_dict({
        "id": "wf",
        "nodes": [{"id": "cond", "type": "condition.if"}]
                 + [{"id": t, "type": "action"} for t in targets],
        "edges": [dict(edge, source="cond", target=t) for edge, t in zip(edges, targets)],
    })


def branches_of(*edges):
    graph = condition_graph(*edges)
    return resolve_branches(graph.get_node("cond"), build_edge_index(graph))


class TestNormalizeBranchValue:

    @pytest.mark.parametrize("raw", [True, "true", "TRUE", "yes", "Yes", "y", "1", " 1 "])
    def test_truthy(self, raw):
        assert normalize_branch_value(raw) == "true"

    @pytest.mark.parametrize("raw", [False, "false", "No", "n", "0"])
    def test_falsy(self, raw):
        assert normalize_branch_value(raw) == "false"

    def test_empty_uses_default(self):
        assert normalize_branch_value(None, "false") == "false"
        assert normalize_branch_value("   ", "true") == "true"
        assert normalize_branch_value("") is None

    def test_other_text_is_trimmed(self):
        assert normalize_branch_value("  premium ") == "premium"
        assert normalize_branch_value(42) == "42"


class TestFieldExtraction:

    def test_label_priority(self):
        edge = WorkflowEdge.from_dict({
            "source": "a", "target": "b",
            "data": {"label": "from-data", "branchLabel": "data-branch"},
            "branchLabel": "branch",
            "condition": {"label": "cond"},
        })
        assert branch_label(edge) == "from-data"
        edge.data.pop("label")
        assert branch_label(edge) == "branch"
        edge.extra.pop("branchLabel")
        assert branch_label(edge) == "data-branch"
        edge.data.pop("branchLabel")
        assert branch_label(edge) == "cond"

    def test_edge_label_wins(self):
        edge = WorkflowEdge.from_dict({"source": "a", "target": "b", "label": "Yes",
                                       "data": {"label": "No"}})
        assert branch_label(edge) == "Yes"

    def test_raw_value_priority(self):
        edge = WorkflowEdge.from_dict({
            "source": "a", "target": "b",
            "branchValue": False,
            "data": {"branchValue": "data"},
            "condition": {"value": "cond"},
        })
        assert raw_branch_value(edge, "label") is False
        edge.extra.pop("branchValue")
        assert raw_branch_value(edge, "label") == "data"
        edge.data.pop("branchValue")
        assert raw_branch_value(edge, "label") == "cond"
        edge.extra.pop("condition")
        assert raw_branch_value(edge, "label") == "label"

    @pytest.mark.parametrize("spec", [
        {"isDefault": True},
        {"default": True},
        {"data": {"isDefault": True}},
        {"data": {"default": "yes"}},
        {"condition": {"isDefault": True}},
        {"condition": {"default": 1}},
    ])
    def test_default_markers(self, spec):
        edge = WorkflowEdge.from_dict(dict(spec, source="a", target="b"))
        assert is_default_branch(edge)

    def test_default_raw_value(self):
        edge = WorkflowEdge.from_dict({"source": "a", "target": "b"})
        assert is_default_branch(edge, "Default")
        assert not is_default_branch(edge, "other")
        assert not is_default_branch(WorkflowEdge.from_dict({"source": "a", "target": "b", "isDefault": False}))


class TestResolveBranches:

    def test_yes_no_labels(self):
        branches = branches_of({"label": "Yes"}, {"label": "No"})
        assert [(b.target_id, b.value) for b in branches] == [("t0", "true"), ("t1", "false")]
        assert [b.label for b in branches] == ["Yes", "No"]

    def test_unlabelled_binary_branches_use_position(self):
        branches = branches_of({}, {})
        assert [b.value for b in branches] == ["true", "false"]

    def test_binary_with_custom_values_is_forced(self):
        branches = branches_of({"label": "Left"}, {"label": "Right"})
        assert [b.value for b in branches] == ["true", "false"]

    def test_binary_explicit_values_respected(self):
        branches = branches_of({"label": "No"}, {"label": "Yes"})
        assert [b.value for b in branches] == ["false", "true"]

    def test_single_branch_is_default_and_true(self):
        branches = branches_of({})
        assert len(branches) == 1
        assert branches[0].value == "true"
        assert branches[0].is_default

    def test_single_branch_keeps_explicit_value(self):
        branches = branches_of({"branchValue": False})
        assert branches[0].value == "false"
        assert branches[0].is_default

    def test_multi_way_branches(self):
        branches = branches_of(
            {"branchValue": "gold"},
            {"branchValue": "silver"},
            {"label": "Other", "isDefault": True},
        )
        assert [b.value for b in branches] == ["gold", "silver", "Other"]
        assert [b.is_default for b in branches] == [False, False, True]

    def test_multi_way_without_values_stay_null(self):
        branches = branches_of({}, {}, {})
        assert [b.value for b in branches] == [None, None, None]

    def test_mapping_serialises_camel_case(self):
        mapping = branches_of({"id": "e9", "label": "Yes"}, {"label": "No"})[0].to_dict()
        assert mapping == {"edgeId": "e9", "targetId": "t0", "label": "Yes",
                           "value": "true", "isDefault": False}
