import json

import pytest

from vibecoder_agent.core.contracts import ModelResponse, ToolCall, UsageMetadata
from vibecoder_agent.core.eval import load_suite, run_eval


APP = "export default function App() {\n  return <div>Hi</div>;\n}\n"


class FakeClient:
    def __init__(self, content):
        self.content = content
        self.n = 0

    def request(self, history, system_instruction, tools, thinking_budget, timeout, model=None):
        self.n += 1
        usage = UsageMetadata(prompt_tokens=10, candidate_tokens=4, total_tokens=14)
        if self.n % 2 == 1:
            call = ToolCall("write_file", {"path": "src/App.tsx", "content": self.content})
            return ModelResponse(tool_calls=(call,), usage=usage)
        return ModelResponse(text_fragments=("done",), usage=usage)


SUITE = """
- id: hello
  goal: Create a hello world app
  mode: architect
  tags: [smoke]
- goal: Fix the app
  mode: fixer
  files:
    src/App.tsx: "broken("
"""


def test_load_suite_file(tmp_path):
    p = tmp_path / "suite.yaml"
    p.write_text(SUITE, encoding="utf-8")
    cases = load_suite(p)
    assert [c.case_id for c in cases] == ["hello", "suite:1"]
    assert cases[0].tags == ["smoke"]
    assert cases[1].files == {"src/App.tsx": "broken("}


def test_load_suite_normalizes_file_paths(tmp_path):
    p = tmp_path / "suite.yaml"
    p.write_text("goal: x\nfiles:\n  ./src/App.tsx: app\n  src/empty.css:\n", encoding="utf-8")
    (case,) = load_suite(p)
    assert case.files == {"src/App.tsx": "app", "src/empty.css": ""}


def test_load_suite_directory(tmp_path):
    (tmp_path / "a.yaml").write_text("goal: one\n", encoding="utf-8")
    (tmp_path / "b.yml").write_text("- goal: two\n- goal: three\n", encoding="utf-8")
    cases = load_suite(tmp_path)
    assert [c.case_id for c in cases] == ["a", "b:0", "b:1"]
    assert all(c.mode == "engineer" for c in cases)


@pytest.mark.parametrize(
    "text",
    [
        "- mode: fixer\n",
        "- goal: x\n  mode: wizard\n",
        "- goal: x\n  files: [a]\n",
        "- goal: x\n  files:\n    src/: x\n",
        "- goal: x\n  files:\n    a.json: {k: 1}\n",
        "- goal: x\n- just a string\n",
        "- id: a\n  goal: x\n- id: a\n  goal: y\n",
        "goal: [unclosed\n",
    ],
)
def test_load_suite_rejects_bad_cases(tmp_path, text):
    p = tmp_path / "suite.yaml"
    p.write_text(text, encoding="utf-8")
    with pytest.raises(ValueError):
        load_suite(p)


def test_run_eval_writes_jsonl_and_summary(tmp_path):
    suite = tmp_path / "suite.yaml"
    suite.write_text(SUITE, encoding="utf-8")
    out = tmp_path / "out" / "results.jsonl"

    clients = {"good": FakeClient(APP), "bad": FakeClient("broken(")}
    summary = run_eval(
        suite_path=suite,
        models=["good", "bad"],
        runs=2,
        out_jsonl=out,
        make_client=lambda m: clients[m],
    )

    lines = [json.loads(l) for l in out.read_text(encoding="utf-8").splitlines()]
    assert len(lines) == 8
    assert {l["model"] for l in lines} == {"good", "bad"}
    assert all(l["turns"] == 2 for l in lines)
    assert all(l["writes"] == 1 for l in lines)
    assert lines[0]["llm"] == {"input_tokens": 20, "output_tokens": 8}

    assert summary["cases"] == 2
    assert summary["summary"]["good"]["success_rate"] == 1.0
    assert summary["summary"]["bad"]["success_rate"] == 0.0
    assert summary["summary"]["good"]["runs"] == 4
    assert summary["summary"]["good"]["avg_turns"] == 2.0


def test_run_eval_requires_models(tmp_path):
    suite = tmp_path / "suite.yaml"
    suite.write_text(SUITE, encoding="utf-8")
    with pytest.raises(ValueError):
        run_eval(
            suite_path=suite,
            models=[" "],
            runs=1,
            out_jsonl=tmp_path / "r.jsonl",
            make_client=lambda m: FakeClient(APP),
        )
