import json
from pathlib import Path

import pytest

from graphscript.compile_from_json import main

EXAMPLES = Path(__file__).resolve().parent.parent / "examples"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("GRAPHSCRIPT_STRICT", "GRAPHSCRIPT_OUT_DIR", "GRAPHSCRIPT_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


def write_graph(tmp_path, data, name="graph.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def simple_graph(**overrides):
    data = {
        "id": "My Flow",
        "nodes": [
            {"id": "n1", "type": "trigger", "op": "trigger.core:manual"},
            {"id": "n2", "type": "action", "op": "action.core:log"},
        ],
        "edges": [{"source": "n1", "target": "n2"}],
    }
    data.update(overrides)
    return data


class TestCompileFromJson:

    def test_writes_code_gs(self, tmp_path, capsys):
        graph_path = write_graph(tmp_path, simple_graph())
        out_dir = tmp_path / "out"
        assert main([str(graph_path), "--out", str(out_dir)]) == 0

        script = (out_dir / "my_flow" / "Code.gs").read_text(encoding="utf-8")
        assert "function main(ctx)" in script
        output = capsys.readouterr().out
        assert "workflow   : My Flow" in output
        assert "nodes      : 2" in output

    def test_print_only(self, tmp_path, capsys):
        graph_path = write_graph(tmp_path, simple_graph())
        assert main([str(graph_path), "--print", "--out", str(tmp_path / "out")]) == 0
        assert "function main(ctx)" in capsys.readouterr().out
        assert not (tmp_path / "out").exists()

    def test_out_dir_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("GRAPHSCRIPT_OUT_DIR", str(tmp_path / "env-out"))
        graph_path = write_graph(tmp_path, simple_graph())
        assert main([str(graph_path)]) == 0
        assert (tmp_path / "env-out" / "my_flow" / "Code.gs").exists()

    def test_diagnostics_printed(self, tmp_path, capsys):
        data = simple_graph()
        data["edges"].append({"id": "bad", "source": "n2", "target": "ghost"})
        graph_path = write_graph(tmp_path, data)
        assert main([str(graph_path), "--out", str(tmp_path)]) == 0
        assert "[warning] dangling-edge" in capsys.readouterr().out

    def test_missing_file(self, tmp_path, capsys):
        assert main([str(tmp_path / "missing.json")]) == 1
        assert "[error] File not found" in capsys.readouterr().err

    def test_schema_error(self, tmp_path, capsys):
        graph_path = write_graph(tmp_path, {"nodes": "nope", "edges": []})
        assert main([str(graph_path)]) == 1
        assert "[error] Schema validation failed" in capsys.readouterr().err

    def test_invalid_json(self, tmp_path, capsys):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        assert main([str(path)]) == 1
        assert "[error] Invalid JSON" in capsys.readouterr().err

    def test_strict_cycle(self, tmp_path, capsys):
        data = simple_graph()
        data["edges"].append({"source": "n2", "target": "n1"})
        graph_path = write_graph(tmp_path, data)
        assert main([str(graph_path), "--strict", "--out", str(tmp_path)]) == 1
        assert "[error] Compilation failed" in capsys.readouterr().err

    @pytest.mark.parametrize("name", ["welcome_email.json", "lead_router.json"])
    def test_bundled_examples_compile(self, tmp_path, name):
        assert main([str(EXAMPLES / name), "--out", str(tmp_path)]) == 0
        assert list(tmp_path.glob("*/Code.gs"))
