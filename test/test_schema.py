import json

import pytest

from graphscript.compiler.deserialiser import graph_to_json, json_to_graph
from graphscript.compiler.schema import SchemaError, validate, validate_file


def valid_graph():
    return {
        "id": "wf",
        "name": "Demo",
        "nodes": [
            {"id": "n1", "type": "trigger", "op": "trigger.core:manual"},
            {"id": "n2", "type": "condition.if", "data": {"rule": "true"}},
            {"id": "n3", "type": "action", "app": "core", "op": "core.log",
             "params": {"message": "done"}},
        ],
        "edges": [
            {"id": "e1", "source": "n1", "target": "n2"},
            {"id": "e2", "from": "n2", "to": "n3", "label": "Yes"},
        ],
    }


class TestValidate:

    def test_valid_graph(self, recwarn):
        validate(valid_graph())
        assert len(recwarn) == 0

    @pytest.mark.parametrize("data, fragment", [
        ([], "JSON object"),
        ({"edges": []}, "'nodes'"),
        ({"nodes": [], "edges": {}}, "edges must be a list"),
        ({"nodes": ["x"], "edges": []}, "nodes[0]"),
        ({"nodes": [{"id": "a"}], "edges": []}, "'type'"),
        ({"nodes": [{"id": 3, "type": "action"}], "edges": []}, "nodes[0].id"),
        ({"nodes": [{"id": "a", "type": "trigger", "params": []}], "edges": []}, "params must be an object"),
        ({"nodes": [], "edges": [3]}, "edges[0]"),
        ({"nodes": [], "edges": [{"source": 1}]}, "edges[0].source"),
    ])
    def test_structural_errors(self, data, fragment):
        with pytest.raises(SchemaError) as excinfo:
            validate(data)
        assert fragment in str(excinfo.value)

    def test_duplicate_ids(self):
        data = valid_graph()
        data["nodes"].append({"id": "n1", "type": "action"})
        with pytest.raises(SchemaError, match="duplicate node id 'n1'"):
            validate(data)

    def test_dangling_edges_are_not_schema_errors(self):
        data = valid_graph()
        data["edges"].append({"source": "n3", "target": "missing"})
        validate(data)

    def test_unknown_operation_warns(self):
        data = valid_graph()
        data["nodes"][2].pop("app")
        data["nodes"][2]["op"] = "slack.post"
        with pytest.warns(UserWarning, match="unknown operation 'action.slack:post'"):
            validate(data)

    def test_unknown_operation_strict(self):
        data = valid_graph()
        data["nodes"][2].pop("app")
        data["nodes"][2]["op"] = "slack.post"
        with pytest.raises(SchemaError):
            validate(data, strict=True)

    def test_unknown_kind_warns(self):
        data = valid_graph()
        data["nodes"][2]["type"] = "gizmo"
        with pytest.warns(UserWarning, match="unknown node type 'gizmo'"):
            validate(data)

    def test_validate_file(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(valid_graph()), encoding="utf-8")
        assert validate_file(path)["id"] == "wf"

    def test_validate_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            validate_file(tmp_path / "nope.json")


class TestDeserialiser:

    def test_from_dict(self):
        graph = json_to_graph(valid_graph())
        assert graph.id == "wf"
        assert graph.name == "Demo"
        assert graph.node_ids == ["n1", "n2", "n3"]
        assert (graph.edges[1].source, graph.edges[1].target) == ("n2", "n3")
        assert graph.get_node("n3").operation_key == "action.core:log"

    def test_from_path(self, tmp_path):
        path = tmp_path / "graph.json"
        path.write_text(json.dumps(valid_graph()), encoding="utf-8")
        assert json_to_graph(str(path)).node_ids == ["n1", "n2", "n3"]

    def test_graph_to_json_round_trip(self):
        graph = json_to_graph(valid_graph())
        again = json_to_graph(graph_to_json(graph))
        assert again == graph

    def test_edge_extras_preserved(self):
        data = valid_graph()
        data["edges"][1]["branchValue"] = True
        edge = json_to_graph(data).edges[1]
        assert edge.get("branchValue") is True
        assert graph_to_json(json_to_graph(data))["edges"][1]["branchValue"] is True

    def test_defaults(self):
        graph = json_to_graph({"nodes": [{"id": 7}], "edges": [{"from": 7, "to": 8}]})
        assert graph.id == "workflow"
        assert graph.nodes[0].id == "7"
        assert graph.nodes[0].type == "action"
        assert graph.edges[0].id == "7->8"
