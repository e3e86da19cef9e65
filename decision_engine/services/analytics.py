# decision_engine/services/analytics.py
"""
Decision analytics (fire-and-forget).

Records comparison-related interaction events for one session and forwards each
event to an HTTP endpoint when one is configured.

- Events: {type, timestamp, sessionId, data}
- Delivery is best effort: a failed POST is logged as a warning and dropped
- Without an endpoint events are only kept in memory
"""
from __future__ import annotations
import logging
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

import httpx

from decision_engine.config import cfg
from decision_engine.models import AnalyticsEvent, DecisionOutcome

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _session_id(now: float) -> str:
    return f"session_{int(now * 1000)}_{uuid.uuid4().hex[:9]}"


class DecisionAnalytics:
    def __init__(self, endpoint: Optional[str] = None,
                 clock: Callable[[], float] = time.time,
                 timeout: float = 5.0,
                 transport: Optional[httpx.BaseTransport] = None):
        self.endpoint = endpoint
        self.timeout = timeout
        self._clock = clock
        self._transport = transport
        self.start_time = clock()
        self.session_id = _session_id(self.start_time)
        self.events: List[AnalyticsEvent] = []
        self._decision_start_time: Optional[float] = None

    # --- tracking ---

    def track_index_filter(self, filter_type: str, filter_value: Any) -> AnalyticsEvent:
        return self._track("index_filter", {"filterType": filter_type, "filterValue": filter_value, "page": "index"})

    def track_tool_selection(self, tool_id: str, selected: bool) -> AnalyticsEvent:
        current = set(self.selected_tools())
        if selected:
            current.add(tool_id)
        else:
            current.discard(tool_id)
        return self._track("tool_selection", {"toolId": tool_id, "selected": selected, "totalSelected": len(current)})

    def track_comparison_start(self, tool1: str, tool2: str, persona: str) -> AnalyticsEvent:
        self._decision_start_time = self._clock()
        return self._track("comparison_start", {
            "tool1": tool1,
            "tool2": tool2,
            "persona": persona,
            "timeToCompare": self._decision_start_time - self.start_time,
        })

    def track_verdict_view(self, tool1: str, tool2: str, winner: str, persona: str) -> AnalyticsEvent:
        return self._track("verdict_view", {"tool1": tool1, "tool2": tool2, "winner": winner, "persona": persona})

    def track_persona_change(self, old_persona: str, new_persona: str, tool1: str, tool2: str) -> AnalyticsEvent:
        return self._track("persona_change", {
            "oldPersona": old_persona,
            "newPersona": new_persona,
            "tool1": tool1,
            "tool2": tool2,
            "timeOnPage": self._elapsed(),
        })

    def track_evidence_click(self, source_url: str, tool_id: str, field: str) -> AnalyticsEvent:
        return self._track("evidence_click", {
            "sourceUrl": source_url, "toolId": tool_id, "field": field, "timeOnPage": self._elapsed(),
        })

    def track_outbound_click(self, destination: str, tool_id: str, context: str) -> AnalyticsEvent:
        if context not in ("verdict", "detail", "comparison"):
            raise ValueError(f"Unknown outbound click context: {context!r}")
        return self._track("outbound_click", {
            "destination": destination, "toolId": tool_id, "context": context, "timeOnPage": self._elapsed(),
        })

    def track_decision_made(self, outcome: DecisionOutcome) -> AnalyticsEvent:
        data = outcome.model_dump()
        data["totalSessionTime"] = self._elapsed()
        data["eventsBeforeDecision"] = len(self.events)
        return self._track("decision_made", data)

    def track_verdict_disagreement(self, tool1: str, tool2: str, user_choice: str,
                                   verdict_winner: str, reason: str) -> AnalyticsEvent:
        return self._track("verdict_disagreement", {
            "tool1": tool1,
            "tool2": tool2,
            "userChoice": user_choice,
            "verdictWinner": verdict_winner,
            "reason": reason,
            "timeOnPage": self._elapsed(),
        })

    # --- reporting ---

    def selected_tools(self) -> List[str]:
        selected: List[str] = []
        for e in self.events:
            if e.type != "tool_selection":
                continue
            tool_id = e.data.get("toolId")
            if e.data.get("selected"):
                if tool_id not in selected:
                    selected.append(tool_id)
            elif tool_id in selected:
                selected.remove(tool_id)
        return selected

    def get_session_summary(self) -> Dict[str, Any]:
        """Aggregate counters for the current session."""
        def _count(event_type: str) -> int:
            return sum(1 for e in self.events if e.type == event_type)

        first_decision = next((e for e in self.events if e.type == "decision_made"), None)
        return {
            "sessionId": self.session_id,
            "totalTime": self._elapsed(),
            "filtersUsed": _count("index_filter"),
            "comparisonsStarted": _count("comparison_start"),
            "decisionsMade": _count("decision_made"),
            "timeToFirstDecision": (first_decision.timestamp - self.start_time) if first_decision else 0,
            "evidenceEngagement": _count("evidence_click"),
            "personaSwitching": _count("persona_change"),
        }

    def export_events(self) -> List[AnalyticsEvent]:
        return list(self.events)

    # --- internals ---

    def _elapsed(self) -> float:
        return self._clock() - self.start_time

    def _track(self, event_type: str, data: Dict[str, Any]) -> AnalyticsEvent:
        event = AnalyticsEvent(type=event_type, timestamp=self._clock(), session_id=self.session_id, data=data)
        self.events.append(event)
        self._send(event)
        return event

    def _send(self, event: AnalyticsEvent) -> bool:
        if not self.endpoint:
            return False
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.post(self.endpoint, json=event.model_dump(by_alias=True))
                resp.raise_for_status()
            return True
        except Exception as e:
            logger.warning("Failed to send analytics event %s: %s", event.type, e)
            return False


_analytics: Optional[DecisionAnalytics] = None


def get_analytics() -> DecisionAnalytics:
    """Process-wide analytics session, created on first use."""
    global _analytics
    if _analytics is None:
        _analytics = DecisionAnalytics(endpoint=cfg.ANALYTICS_ENDPOINT, timeout=cfg.HTTP_TIMEOUT)
    return _analytics
