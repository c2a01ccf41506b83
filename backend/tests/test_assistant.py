"""
Assistant service and endpoints with a fake OpenAI client.
"""
import json

import pytest

from manifest_viewer.schemas.assistant import (
    AnomalyReportAction,
    ChatMessage,
    PrintSummaryAction,
    RenderChartAction,
    WeightDistributionAction,
)
from manifest_viewer.schemas.chart import ChartSpec
from manifest_viewer.schemas.manifest import select_house, select_uld
from manifest_viewer.services import assistant as assistant_service
from manifest_viewer.services.assistant import (
    APOLOGY_MESSAGE,
    NOT_CONFIGURED_MESSAGE,
    answer_question,
    build_compact_context,
    build_question_prompt,
    run_action,
    stream_answer,
    suggest_actions,
)

REPLY_WITH_ACTIONS = (
    "176-111 is the heaviest MAWB at 57 kg.\n"
    + json.dumps({"actions": [
        {"type": "weight_distribution", "label": "Weight by MAWB"},
        {"type": "render_chart", "label": "Bad chart", "spec": {"chartType": "radar"}},
    ]})
)


def _events(frames):
    return [json.loads(frame[len("data: "):]) for frame in frames]


# ── answer_question ───────────────────────────────────────────────────────────

class TestAnswerQuestion:
    def test_actions_split_and_validated(self, manifest, fake_openai):
        completions = fake_openai(REPLY_WITH_ACTIONS)
        response = answer_question(manifest, "Which MAWB is heaviest?")
        assert response.text == "176-111 is the heaviest MAWB at 57 kg."
        assert len(response.actions) == 1
        assert isinstance(response.actions[0], WeightDistributionAction)

        messages = completions.calls[0]["messages"]
        assert messages[0]["role"] == "system"
        assert 'QUESTION: "Which MAWB is heaviest?"' in messages[-1]["content"]
        assert "MAN-001" in messages[-1]["content"]

    def test_history_is_replayed(self, manifest, fake_openai):
        completions = fake_openai("Sure.")
        answer_question(manifest, "And the lightest?", history=[
            ChatMessage(sender="user", text="Which is heaviest?"),
            ChatMessage(sender="ai", text="176-111."),
        ])
        roles = [m["role"] for m in completions.calls[0]["messages"]]
        assert roles == ["system", "user", "assistant", "user"]

    def test_failure_returns_apology(self, manifest, fake_openai):
        fake_openai(RuntimeError("rate limited"))
        response = answer_question(manifest, "Anything?")
        assert response.text == APOLOGY_MESSAGE
        assert response.actions == []

    def test_not_configured(self, manifest, monkeypatch):
        monkeypatch.setattr(assistant_service, "_openai_client", None)
        monkeypatch.setattr(assistant_service.settings, "openai_api_key", "")
        assert answer_question(manifest, "Hi").text == NOT_CONFIGURED_MESSAGE


def test_prompt_describes_selection(manifest):
    shipment = manifest.shipments[0]
    uld_prompt = build_question_prompt(manifest, "q", "176-111", select_uld(shipment, shipment.uld_contents[0]))
    hawb_prompt = build_question_prompt(manifest, "q", "176-111", select_house(shipment, shipment.house_shipments[0]))
    assert "Selected ULD: AKE1001EK (MAWB 176-111)" in uld_prompt
    assert "Selected HAWB: H-1 (MAWB 176-111)" in hawb_prompt
    assert "No specific MAWB selected" in build_question_prompt(manifest, "q")


# ── stream_answer ─────────────────────────────────────────────────────────────

def test_stream_hides_actions_and_finishes_with_done(manifest, fake_openai):
    chunks = ["176-111 is ", "the heaviest.\n", '{"actions": [{"type": "anomaly_report", "label": "Check"}]}']
    fake_openai(chunks)
    events = _events(list(stream_answer(manifest, "Heaviest?")))

    assert [e["type"] for e in events] == ["text", "text", "text", "done"]
    assert events[0]["text"] == "176-111 is "
    assert "actions" not in events[2]["text"]
    assert events[-1]["text"] == "176-111 is the heaviest."
    assert events[-1]["actions"] == [{"type": "anomaly_report", "label": "Check"}]


def test_stream_failure_yields_apology(manifest, fake_openai):
    fake_openai(RuntimeError("boom"))
    events = _events(list(stream_answer(manifest, "Heaviest?")))
    assert events == [{"type": "done", "text": APOLOGY_MESSAGE, "actions": []}]


# ── suggestions ───────────────────────────────────────────────────────────────

class TestSuggestActions:
    def test_parses_json_response(self, manifest, fake_openai):
        fake_openai(json.dumps({"actions": [
            {"type": "anomaly_report", "label": "Find anomalies"},
            {"type": "render_chart", "label": "Top MAWBs", "spec": {"source": "shipments", "chartType": "bar", "xField": "mawb", "topN": 10}},
        ]}))
        actions = suggest_actions(manifest, "176-111", sleep=lambda s: None)
        assert isinstance(actions[0], AnomalyReportAction)
        assert isinstance(actions[1], RenderChartAction)
        assert actions[1].spec.top_n == 10

    def test_retries_with_backoff(self, manifest, fake_openai):
        completions = fake_openai(
            RuntimeError("timeout"),
            "not json",
            "```json\n" + json.dumps({"actions": [{"type": "print_summary", "label": "Print"}]}) + "\n```",
        )
        delays = []
        actions = suggest_actions(manifest, sleep=delays.append)
        assert len(completions.calls) == 3
        assert delays == [0.5, 1.0]
        assert isinstance(actions[0], PrintSummaryAction)

    def test_gives_up_after_three_attempts(self, manifest, fake_openai):
        completions = fake_openai("{}", "{}", "{}", "{}")
        assert suggest_actions(manifest, sleep=lambda s: None) == []
        assert len(completions.calls) == 3


def test_compact_context(manifest):
    context = build_compact_context(manifest, "176-111")
    assert context["totals"] == {"pieces": 7, "weight": 97.0, "unit": "kg"}
    assert [m["awb_number"] for m in context["topMawbs"]] == ["176-111", "176-222"]
    assert context["selected"]["topUlds"][0]["uld_id"] == "PMC2002EK"
    assert context["selected"]["topHawbs"][0]["hawb_number"] == "H-2"
    assert build_compact_context(manifest)["selected"] is None


# ── run_action ────────────────────────────────────────────────────────────────

class TestRunAction:
    def test_weight_distribution(self, manifest):
        result = run_action(manifest, WeightDistributionAction())
        chart = result.payload["chart"]
        assert result.title == "Weight Distribution by MAWB"
        assert chart["option"]["series"][0]["type"] == "bar"
        assert [p["name"] for p in chart["data"]] == ["176-111", "176-222"]

    def test_anomaly_report(self, manifest):
        result = run_action(manifest, AnomalyReportAction())
        assert result.payload == {"anomalies": [], "count": 0}

    def test_print_summary(self, manifest):
        result = run_action(manifest, PrintSummaryAction())
        assert result.payload["summary"]["total_pieces"] == 7

    def test_render_chart_uses_label_as_title(self, manifest):
        action = RenderChartAction(label="ULD load", spec=ChartSpec(source="ulds", chartType="bar", xField="uld"))
        result = run_action(manifest, action)
        assert result.title == "ULD load"
        assert result.payload["chart"]["spec"]["xField"] == "uld_id"


# ── endpoints ─────────────────────────────────────────────────────────────────

@pytest.fixture
def chat_body(manifest):
    return {"manifest": manifest.model_dump(), "question": "Which MAWB is heaviest?", "selected_mawb": "176-111"}


def test_chat_endpoint(client, chat_body, fake_openai):
    fake_openai(REPLY_WITH_ACTIONS)
    resp = client.post("/api/assistant/chat", json=chat_body)
    assert resp.status_code == 200
    assert resp.json()["actions"] == [{"type": "weight_distribution", "label": "Weight by MAWB"}]


def test_chat_endpoint_accepts_tagged_selection(client, chat_body, fake_openai):
    completions = fake_openai("ok")
    chat_body["selected_item"] = {"kind": "hawb", "awb_number": "176-111", "hawb_number": "H-1"}
    assert client.post("/api/assistant/chat", json=chat_body).status_code == 200
    assert "Selected HAWB: H-1" in completions.calls[0]["messages"][-1]["content"]


def test_chat_endpoint_rejects_untagged_selection(client, chat_body):
    chat_body["selected_item"] = {"awb_number": "176-111", "uld_id": "AKE1001EK"}
    assert client.post("/api/assistant/chat", json=chat_body).status_code == 422


def test_chat_stream_endpoint(client, chat_body, fake_openai):
    fake_openai(["Hello", " there"])
    resp = client.post("/api/assistant/chat/stream", json=chat_body)
    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    frames = [f + "\n\n" for f in resp.text.split("\n\n") if f]
    assert _events(frames)[-1] == {"type": "done", "text": "Hello there", "actions": []}


def test_suggestions_endpoint(client, manifest, fake_openai):
    fake_openai(json.dumps({"actions": [{"type": "weight_distribution", "label": "Weights"}]}))
    resp = client.post("/api/assistant/suggestions", json={"manifest": manifest.model_dump()})
    assert resp.status_code == 200
    assert resp.json() == {"actions": [{"type": "weight_distribution", "label": "Weights"}]}


def test_run_action_endpoint(client, manifest):
    resp = client.post("/api/assistant/actions/run", json={
        "manifest": manifest.model_dump(),
        "action": {"type": "render_chart", "label": "Pieces", "spec": {"chartType": "pie", "yField": "pcs"}},
    })
    assert resp.status_code == 200
    body = resp.json()
    assert body["type"] == "render_chart"
    assert body["payload"]["chart"]["option"]["series"][0]["type"] == "pie"
