"""
LLM integration for the manifest chat assistant.
"""
import json
import logging
import re
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

from openai import OpenAI

from manifest_viewer.config.settings import settings
from manifest_viewer.schemas.assistant import (
    AnomalyReportAction,
    ChatMessage,
    ChatResponse,
    PrintSummaryAction,
    QuickAction,
    RenderChartAction,
    RunActionResponse,
    WeightDistributionAction,
)
from manifest_viewer.schemas.chart import ChartSpec
from manifest_viewer.schemas.manifest import ManifestData, SelectedHouse, SelectedItem
from manifest_viewer.services.action_parser import parse_actions, validate_actions
from manifest_viewer.services.chart_options import render_chart
from manifest_viewer.services.export import build_summary
from manifest_viewer.services.shipment_analysis import find_anomalies

# Lazy initialization of OpenAI client
_openai_client = None
logger = logging.getLogger(__name__)

APOLOGY_MESSAGE = "Sorry, an error occurred while generating the response. Please try again."
NOT_CONFIGURED_MESSAGE = "OpenAI API key not configured. Please set OPENAI_API_KEY."
SUGGESTION_ATTEMPTS = 3
SUGGESTION_BACKOFF_SECONDS = 0.5

# Start of an actions payload that has not finished streaming yet
PENDING_ACTIONS_RE = re.compile(r'```|\{\s*"actions"')

SYSTEM_INSTRUCTION = """You are an expert air cargo logistics assistant integrated into a manifest viewer dashboard.
Answer strictly from the provided MANIFEST DATA CONTEXT. If unknown, say you don't know.

When relevant, append a machine-readable JSON object on the last line with a single key "actions".
It MUST be valid JSON, no backticks, no extra commentary. The schema is:
{
  "actions": [
    { "type": "weight_distribution", "label": string },
    { "type": "anomaly_report", "label": string },
    { "type": "print_summary", "label": string },
    { "type": "render_chart", "label": string, "spec": {
        "source": "shipments"|"hawbs"|"ulds",
        "chartType": "bar"|"line"|"pie"|"stacked_bar"|"scatter"|"histogram"|"heatmap"|"treemap",
        "xField": string,
        "yField": string | null,
        "yCategoryField": string | null,
        "valueField": string | null,
        "seriesField": string | null,
        "sizeField": string | null,
        "parentField": string | null,
        "childField": string | null,
        "aggregate": "sum"|"count"|"avg",
        "title": string | null,
        "filters": [ { "field": string, "op": "eq"|"neq"|"contains"|"in"|"gt"|"gte"|"lt"|"lte", "value": any } ] | null,
        "topN": number | null,
        "sort": "asc"|"desc" | null,
        "unit": string | null,
        "binCount": number | null,
        "stack": boolean | null
    }}
  ]
}

Only include actions that make sense for the question and data."""

SUGGESTION_INSTRUCTION = """You are a logistics analytics copilot embedded into a dashboard.
Propose up to 6 high-value quick actions the user can execute now.
Output ONLY JSON with the following schema, no prose, no code fences:
{{ "actions": [ {{ "type": "render_chart"|"anomaly_report"|"print_summary"|"weight_distribution", "label": string, "spec"?: {{
    "source": "shipments"|"hawbs"|"ulds",
    "chartType": "bar"|"line"|"pie",
    "xField": string,
    "yField": string | null,
    "aggregate": "sum"|"count"|"avg",
    "title": string | null,
    "filters": [ {{ "field": string, "op": "eq"|"neq"|"contains"|"in"|"gt"|"gte"|"lt"|"lte", "value": any }} ] | null,
    "topN": number | null,
    "sort": "asc"|"desc" | null,
    "unit": string | null
}} }} ] }}
Guidance:
- Prefer concise, insightful visuals (topN 10-20) and include unit: "{unit}" for weight charts.
- If a MAWB is selected ({selected}), tailor at least two actions to it.
- Avoid duplicate actions; keep labels <= 48 chars."""


def get_openai_client():
    """Get or initialize OpenAI client lazily."""
    global _openai_client
    if _openai_client is None:
        if settings.openai_api_key:
            try:
                _openai_client = OpenAI(api_key=settings.openai_api_key)
            except Exception as e:
                # Log error but don't crash the app
                logger.warning("Failed to initialize OpenAI client: %s", e)
                _openai_client = False  # Use False to indicate initialization failed
    return _openai_client if _openai_client else None


def _describe_selection(selected_mawb: Optional[str], selected_item: Optional[SelectedItem]) -> str:
    parts = [f"Selected MAWB: {selected_mawb}" if selected_mawb else "No specific MAWB selected"]
    if isinstance(selected_item, SelectedHouse):
        parts.append(f"Selected HAWB: {selected_item.hawb_number} (MAWB {selected_item.awb_number})")
    elif selected_item is not None:
        parts.append(f"Selected ULD: {selected_item.uld_id} (MAWB {selected_item.awb_number})")
    return "; ".join(parts)


def build_question_prompt(
    manifest: ManifestData,
    question: str,
    selected_mawb: Optional[str] = None,
    selected_item: Optional[SelectedItem] = None,
) -> str:
    payload = json.dumps({"manifest": manifest.model_dump()}, indent=2)
    return f"""QUESTION: "{question}"

CONTEXT NOTE: {_describe_selection(selected_mawb, selected_item)}

MANIFEST DATA CONTEXT:
{payload}"""


def _build_messages(
    manifest: ManifestData,
    question: str,
    selected_mawb: Optional[str],
    selected_item: Optional[SelectedItem],
    history: Optional[List[ChatMessage]],
) -> List[Dict[str, str]]:
    messages = [{"role": "system", "content": SYSTEM_INSTRUCTION}]
    for message in history or []:
        messages.append({
            "role": "user" if message.sender == "user" else "assistant",
            "content": message.text,
        })
    messages.append({"role": "user", "content": build_question_prompt(manifest, question, selected_mawb, selected_item)})
    return messages


def answer_question(
    manifest: ManifestData,
    question: str,
    selected_mawb: Optional[str] = None,
    selected_item: Optional[SelectedItem] = None,
    history: Optional[List[ChatMessage]] = None,
) -> ChatResponse:
    """
    Answer a question about the manifest.

    Any trailing actions JSON in the reply is split off and validated.
    Failures come back as an apology so the conversation can continue.
    """
    client = get_openai_client()
    if not client:
        return ChatResponse(text=NOT_CONFIGURED_MESSAGE)

    start_time = time.perf_counter()
    try:
        response = client.chat.completions.create(
            model=settings.openai_model,
            messages=_build_messages(manifest, question, selected_mawb, selected_item, history),
            temperature=0.3,
            max_tokens=1200,
        )
        content = response.choices[0].message.content or ""
    except Exception:
        logger.exception("Error sending message to assistant")
        return ChatResponse(text=APOLOGY_MESSAGE)

    clean_text, raw_actions = parse_actions(content)
    actions = validate_actions(raw_actions)
    duration = round(time.perf_counter() - start_time, 3)
    logger.info(
        "Answered question for manifest %s in %.2fs (actions=%d)",
        manifest.manifest_number, duration, len(actions),
    )
    return ChatResponse(text=clean_text.strip(), actions=actions)


def _visible_text(accumulated: str) -> str:
    clean_text, _ = parse_actions(accumulated)
    match = PENDING_ACTIONS_RE.search(clean_text)
    return clean_text[:match.start()] if match else clean_text


def to_sse(event: Dict[str, Any]) -> str:
    """Encode one event as Server-Sent Events frame."""
    return f"data: {json.dumps(event, ensure_ascii=True)}\n\n"


def stream_answer(
    manifest: ManifestData,
    question: str,
    selected_mawb: Optional[str] = None,
    selected_item: Optional[SelectedItem] = None,
    history: Optional[List[ChatMessage]] = None,
) -> Iterator[str]:
    """
    Stream an answer as SSE frames.

    ``text`` frames carry the visible reply so far (actions JSON hidden);
    the closing ``done`` frame carries the final text and parsed actions.
    """
    client = get_openai_client()
    if not client:
        yield to_sse({"type": "done", "text": NOT_CONFIGURED_MESSAGE, "actions": []})
        return

    accumulated = ""
    try:
        stream = client.chat.completions.create(
            model=settings.openai_model,
            messages=_build_messages(manifest, question, selected_mawb, selected_item, history),
            temperature=0.3,
            max_tokens=1200,
            stream=True,
        )
        for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content or ""
            if not delta:
                continue
            accumulated += delta
            yield to_sse({"type": "text", "text": _visible_text(accumulated)})
    except Exception:
        logger.exception("Error streaming assistant response")
        yield to_sse({"type": "done", "text": APOLOGY_MESSAGE, "actions": []})
        return

    clean_text, raw_actions = parse_actions(accumulated)
    actions = validate_actions(raw_actions)
    if actions:
        logger.debug("Assistant suggested actions: %s", [a.type for a in actions])
    yield to_sse({
        "type": "done",
        "text": clean_text.strip(),
        "actions": [a.model_dump(by_alias=True, exclude_none=True) for a in actions],
    })


def build_compact_context(manifest: ManifestData, selected_mawb: Optional[str] = None) -> Dict[str, Any]:
    """Small context for action suggestions: heaviest MAWBs plus the selected MAWB's ULDs/HAWBs."""
    unit = manifest.total_weight.unit or "kg"
    shipments = sorted(
        ({"awb_number": s.awb_number, "pieces": s.pieces, "weight": s.weight.value or 0} for s in manifest.shipments),
        key=lambda s: s["weight"],
        reverse=True,
    )

    selected = None
    shipment = next((s for s in manifest.shipments if s.awb_number == selected_mawb), None) if selected_mawb else None
    if shipment is not None:
        selected = {
            "awb_number": shipment.awb_number,
            "topUlds": sorted(
                ({"uld_id": u.uld_id or "UNKNOWN", "pieces": u.pieces, "weight": u.weight.value or 0}
                 for u in shipment.uld_contents),
                key=lambda u: u["weight"], reverse=True,
            )[:20],
            "topHawbs": sorted(
                ({"hawb_number": h.hawb_number, "pieces": h.pieces, "weight": h.actual_weight_kg or 0}
                 for h in shipment.house_shipments),
                key=lambda h: h["weight"], reverse=True,
            )[:20],
        }

    flight = manifest.flight_details
    return {
        "manifest_number": manifest.manifest_number,
        "flight": flight.flight_number,
        "route": f"{flight.departure_airport} → {flight.arrival_airport}",
        "totals": {"pieces": manifest.total_pieces, "weight": manifest.total_weight.value or 0, "unit": unit},
        "topMawbs": shipments[:30],
        "selected": selected,
    }


def _strip_code_fences(raw: str) -> str:
    return raw.replace("```json", "").replace("```", "").strip()


def suggest_actions(
    manifest: ManifestData,
    selected_mawb: Optional[str] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> List[QuickAction]:
    """Ask for up to 6 quick actions; retried with exponential backoff, empty on failure."""
    client = get_openai_client()
    if not client:
        return []

    system = SUGGESTION_INSTRUCTION.format(unit=manifest.total_weight.unit or "kg", selected=selected_mawb or "none")
    prompt = f"SUGGEST_ACTIONS with COMPACT_CONTEXT:\n{json.dumps(build_compact_context(manifest, selected_mawb))}"

    for attempt in range(SUGGESTION_ATTEMPTS):
        try:
            response = client.chat.completions.create(
                model=settings.openai_model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
                max_tokens=800,
                response_format={"type": "json_object"},
            )
            parsed = json.loads(_strip_code_fences(response.choices[0].message.content or ""))
            raw_actions = parsed.get("actions") if isinstance(parsed, dict) else None
            actions = validate_actions(raw_actions if isinstance(raw_actions, list) else [])
            if actions:
                return actions
            logger.warning("Empty action suggestions (attempt %d)", attempt + 1)
        except Exception as e:
            logger.warning("Action suggestion attempt %d failed: %s", attempt + 1, e)
        if attempt < SUGGESTION_ATTEMPTS - 1:
            sleep(SUGGESTION_BACKOFF_SECONDS * (2 ** attempt))
    return []


def weight_distribution_spec() -> ChartSpec:
    return ChartSpec(
        source="shipments",
        chartType="bar",
        xField="awb_number",
        yField="weight.value",
        aggregate="sum",
        title="Weight Distribution by MAWB",
    )


def run_action(manifest: ManifestData, action: QuickAction) -> RunActionResponse:
    """Execute a quick action against the in-memory manifest."""
    logger.debug("Running action %s (%s)", action.type, action.label)
    if isinstance(action, WeightDistributionAction):
        chart = render_chart(manifest, weight_distribution_spec())
        return RunActionResponse(type=action.type, title=chart.title, payload={"chart": chart.model_dump(by_alias=True)})
    if isinstance(action, AnomalyReportAction):
        anomalies = find_anomalies(manifest)
        return RunActionResponse(
            type=action.type,
            title="Anomaly Report",
            payload={"anomalies": [a.model_dump() for a in anomalies], "count": len(anomalies)},
        )
    if isinstance(action, PrintSummaryAction):
        return RunActionResponse(type=action.type, title="Printable Summary", payload={"summary": build_summary(manifest)})
    if isinstance(action, RenderChartAction):
        chart = render_chart(manifest, action.spec, title=action.spec.title or action.label)
        return RunActionResponse(type=action.type, title=chart.title, payload={"chart": chart.model_dump(by_alias=True)})
    raise ValueError(f"Unsupported action type: {action.type}")
