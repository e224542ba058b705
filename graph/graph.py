"""
LangGraph StateGraph for one weather lookup:
START -> (ExtractIntent, unless an intent was echoed back) -> ResolveLocation
      -> (END with disambiguation | FetchWeather -> PersistLocation -> Compose -> END).
Disambiguation is never resumed server-side: the caller re-enters with the same intent and a selectedLocationIndex.
"""
import datetime
from typing import Optional, Union

from langgraph.graph import END, START, StateGraph

from graph.compose import LookupResult
from graph.disambiguation import DisambiguationResponse
from graph.intent import Intent
from graph.nodes import (
    LookupServices,
    compose_node,
    extract_intent_node,
    fetch_weather_node,
    persist_location_node,
    resolve_location_node,
)
from graph.state import LookupState


def route_entry(state: LookupState) -> str:
    """Skip extraction when the caller already holds an intent."""
    if state.get("intent") is not None:
        return "resolve_location"
    return "extract_intent"


def route_after_resolve(state: LookupState) -> str:
    if state.get("disambiguation") is not None:
        return "disambiguation"
    return "fetch_weather"


def build_graph():
    """Build and compile the graph. No checkpointer: nothing is remembered between requests."""
    builder = StateGraph(LookupState)

    builder.add_node("extract_intent", extract_intent_node)
    builder.add_node("resolve_location", resolve_location_node)
    builder.add_node("fetch_weather", fetch_weather_node)
    builder.add_node("persist_location", persist_location_node)
    builder.add_node("compose", compose_node)

    builder.add_conditional_edges(
        START,
        route_entry,
        {"extract_intent": "extract_intent", "resolve_location": "resolve_location"},
    )
    builder.add_edge("extract_intent", "resolve_location")
    builder.add_conditional_edges(
        "resolve_location",
        route_after_resolve,
        {"disambiguation": END, "fetch_weather": "fetch_weather"},
    )
    builder.add_edge("fetch_weather", "persist_location")
    builder.add_edge("persist_location", "compose")
    builder.add_edge("compose", END)

    return builder.compile()


# Singleton compiled graph for the app
_graph = None


def get_graph():
    global _graph
    if _graph is None:
        _graph = build_graph()
    return _graph


async def run_lookup(
    services: LookupServices,
    query: str,
    *,
    intent: Optional[Intent] = None,
    current_location: Optional[tuple[float, float]] = None,
    selected_index: Optional[int] = None,
    units: str = "imperial",
    reference_date: Optional[datetime.date] = None,
) -> Union[DisambiguationResponse, LookupResult]:
    initial: LookupState = {
        "query": query,
        "reference_date": reference_date or datetime.date.today(),
        "current_location": current_location,
        "selected_index": selected_index,
        "units": units,
        "intent": intent,
        "disambiguation": None,
    }
    final = await get_graph().ainvoke(initial, config={"configurable": {"services": services}})
    if final.get("disambiguation") is not None:
        return final["disambiguation"]
    return final["result"]
