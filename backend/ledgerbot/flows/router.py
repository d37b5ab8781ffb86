# /ledgerbot/flows/router.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from ledgerbot.config import strings
from ledgerbot.config.settings import settings
from ledgerbot.flows.base import BaseFlow, FlowServices
from ledgerbot.flows.registry import DOCUMENT_FLOW, INTENT_FLOW_TABLE, PARAM_FLOWS, RULE_FLOWS
from ledgerbot.flows.state import SessionManager
from ledgerbot.models.events import InboundEvent
from ledgerbot.services.ai_service import IntentLabels
from ledgerbot.utils.metrics import route_decisions_counter

# Decides who handles an inbound event. Layers are tried in a fixed order and
# the first one that claims the event wins:
#   1. the user's active flow chain
#   2. an attachment, which always goes to the document flow
#   3. rule predicates, in RULE_FLOWS order
#   4. parameter extraction, in PARAM_FLOWS order
#   5. the AI classifier
# Anything left over gets the help text and creates no session.

logger = logging.getLogger(__name__)

Classifier = Callable[[str], Awaitable[str]]


class RouteStrategy:
    ACTIVE_SESSION = "active_session"
    DOCUMENT = "document"
    RULE = "rule"
    PARAMS = "params"
    CLASSIFIER = "classifier"
    HELP = "help"
    NONE = "none"


@dataclass
class RouteResult:
    response: Optional[str]
    strategy: str
    intent: Optional[str] = None


class IntentRouter:
    def __init__(
        self,
        sessions: SessionManager,
        services: FlowServices,
        classifier: Optional[Classifier] = None,
        rule_flows: Optional[List[Type[BaseFlow]]] = None,
        param_flows: Optional[List[Type[BaseFlow]]] = None,
        intent_table: Optional[Dict[str, Type[BaseFlow]]] = None,
        document_flow: Type[BaseFlow] = DOCUMENT_FLOW,
        classifier_timeout: float = settings.classifier_timeout,
    ):
        self.sessions = sessions
        self.services = services
        if classifier is None and services.ai is not None:
            classifier = services.ai.classify_intent
        self.classifier = classifier
        self.rule_flows = RULE_FLOWS if rule_flows is None else rule_flows
        self.param_flows = PARAM_FLOWS if param_flows is None else param_flows
        self.intent_table = INTENT_FLOW_TABLE if intent_table is None else intent_table
        self.document_flow = document_flow
        self.classifier_timeout = classifier_timeout

    async def route(self, event: InboundEvent) -> RouteResult:
        result = await self._route(event)
        route_decisions_counter.labels(strategy=result.strategy).inc()
        logger.info(f"Routed event for {event.user_key} via '{result.strategy}' (intent: {result.intent})")
        return result

    async def _route(self, event: InboundEvent) -> RouteResult:
        user_key = event.user_key

        session = self.sessions.get_session(user_key)
        if session is not None:
            intent = session.flow.active_flow().intent
            response = await self.sessions.route_turn(user_key, event)
            return RouteResult(response, RouteStrategy.ACTIVE_SESSION, intent)

        if event.has_attachment:
            # The caption is ignored: an attachment always means "process this document"
            return await self._start(self.document_flow, event, {}, RouteStrategy.DOCUMENT)

        text = event.clean_text
        if not text:
            return RouteResult(strings.NO_ROUTE_FOUND, RouteStrategy.NONE)

        for flow_cls in self.rule_flows:
            if flow_cls.matches(text):
                return await self._start(flow_cls, event, {}, RouteStrategy.RULE)

        for flow_cls in self.param_flows:
            params = flow_cls.extract_params(text)
            if params:
                return await self._start(flow_cls, event, params, RouteStrategy.PARAMS)

        label = await self._classify(text)
        if label == IntentLabels.HELP:
            return RouteResult(strings.HELP_MESSAGE, RouteStrategy.HELP, label)
        flow_cls = self.intent_table.get(label)
        if flow_cls is not None:
            return await self._start(flow_cls, event, {}, RouteStrategy.CLASSIFIER)

        return RouteResult(strings.NO_ROUTE_FOUND, RouteStrategy.NONE)

    async def _classify(self, text: str) -> str:
        if self.classifier is None:
            return IntentLabels.UNKNOWN
        try:
            return await asyncio.wait_for(self.classifier(text), timeout=self.classifier_timeout)
        except asyncio.TimeoutError:
            logger.warning("AI intent classification timed out. Falling back to help.")
        except Exception as e:
            logger.error(f"AI intent classification failed: {e}")
        return IntentLabels.UNKNOWN

    async def _start(self, flow_cls: Type[BaseFlow], event: InboundEvent, params: Dict[str, Any], strategy: str) -> RouteResult:
        user_key = event.user_key
        flow = flow_cls(user_key, self.services, params)
        self.sessions.start_flow(user_key, flow)
        try:
            response = await flow.start(event)
        except Exception:
            self.sessions.end_flow(user_key, flow)
            raise
        if flow.is_complete:
            self.sessions.end_flow(user_key, flow)
        return RouteResult(response, strategy, flow.intent)
