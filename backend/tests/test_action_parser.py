import json

from manifest_viewer.schemas.assistant import AnomalyReportAction, RenderChartAction, WeightDistributionAction
from manifest_viewer.services.action_parser import parse_actions, validate_actions

ACTIONS = {"actions": [
    {"type": "weight_distribution", "label": "Weights"},
    {"type": "render_chart", "label": "Top MAWBs", "spec": {"source": "shipments", "chartType": "bar", "xField": "mawb"}},
]}


def test_last_line_json():
    text = "The heaviest MAWB is 176-111.\n" + json.dumps(ACTIONS)
    clean, actions = parse_actions(text)
    assert clean == "The heaviest MAWB is 176-111."
    assert [a["type"] for a in actions] == ["weight_distribution", "render_chart"]


def test_fenced_json_block():
    text = "Here you go.\n```json\n" + json.dumps(ACTIONS, indent=2) + "\n```"
    clean, actions = parse_actions(text)
    assert clean == "Here you go."
    assert len(actions) == 2


def test_inline_json_in_middle_of_text():
    text = "Summary first. " + json.dumps({"actions": [{"type": "anomaly_report", "label": "Check"}]}) + " Done."
    clean, actions = parse_actions(text)
    assert "actions" not in clean
    assert clean.startswith("Summary first.")
    assert clean.endswith("Done.")
    assert actions == [{"type": "anomaly_report", "label": "Check"}]


def test_no_actions():
    text = "Just an answer."
    assert parse_actions(text) == (text, [])


def test_malformed_json_left_in_text():
    text = 'Answer.\n{"actions": [ {"type": '
    clean, actions = parse_actions(text)
    assert actions == []
    assert clean == text


def test_validate_actions_builds_typed_models():
    actions = validate_actions(ACTIONS["actions"])
    assert isinstance(actions[0], WeightDistributionAction)
    assert isinstance(actions[1], RenderChartAction)
    assert actions[1].spec.chart_type == "bar"
    assert actions[1].spec.x_field == "mawb"


def test_validate_actions_drops_invalid_entries():
    raw = [
        {"type": "launch_rockets"},
        {"type": "render_chart", "label": "Bad", "spec": {"chartType": "radar"}},
        {"type": "render_chart", "label": "Missing spec"},
        {"type": "anomaly_report"},
        "not even a dict",
    ]
    actions = validate_actions(raw)
    assert len(actions) == 1
    assert isinstance(actions[0], AnomalyReportAction)
    assert actions[0].label == "Anomaly report"
