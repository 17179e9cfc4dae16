"""
Load Balancer for distributing a batch of requests across models
"""

import logging
import threading
from typing import Dict, Any, List, Optional, TYPE_CHECKING
from dataclasses import dataclass, field, asdict

from model_router.config import RouterSettings
from model_router.errors import RouterError
from model_router.models import AIRequest, RequestPriority
from model_router.scorer import ModelSelection

if TYPE_CHECKING:
    from model_router.router import ModelRouter

logger = logging.getLogger(__name__)


@dataclass
class RouteAssignment:
    request_id: str
    model_id: str
    priority: RequestPriority
    estimated_processing_time_ms: float
    estimated_cost: float = 0.0
    confidence: float = 0.0


@dataclass
class RoutingPlan:
    """Batch-level request -> model mapping with aggregate estimates"""
    routes: List[RouteAssignment] = field(default_factory=list)
    estimated_latency_ms: float = 0.0
    estimated_cost: float = 0.0
    load_distribution: Dict[str, int] = field(default_factory=dict)
    unrouted: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LoadBalancer:
    """
    Distributes requests across models using the router's selection

    Requests are planned in descending priority (submission order kept for
    equal priorities). When the selected model and some of its alternates
    score within `near_tie_epsilon` of each other, the one picked least often
    so far wins, which spreads a batch across equally good models.
    """

    def __init__(self, router: "ModelRouter", settings: Optional[RouterSettings] = None):
        self.router = router
        self.settings = settings or router.settings
        self._request_counts: Dict[str, int] = {}
        self._lock = threading.Lock()

    async def balance_load(self, requests: List[AIRequest]) -> RoutingPlan:
        """
        Build a routing plan for a batch of requests

        Args:
            requests: Requests to plan, in submission order

        Returns:
            RoutingPlan; requests whose selection failed are listed in `unrouted`
        """
        plan = RoutingPlan()

        # sorted() is stable, so equal priorities keep submission order
        ordered = sorted(requests, key=lambda r: r.priority, reverse=True)

        for request in ordered:
            try:
                selection = await self.router.select_model(request)
            except RouterError as e:
                logger.warning(
                    f"Failed to route request {request.id} in load balancing: "
                    f"{e.code.value}: {e.message}"
                )
                plan.unrouted.append(request.id)
                continue

            selection = self._spread(selection)

            plan.routes.append(RouteAssignment(
                request_id=request.id,
                model_id=selection.model_id,
                priority=request.priority,
                estimated_processing_time_ms=selection.estimated_latency_ms,
                estimated_cost=selection.estimated_cost,
                confidence=selection.confidence,
            ))
            plan.load_distribution[selection.model_id] = plan.load_distribution.get(selection.model_id, 0) + 1
            plan.estimated_latency_ms = max(plan.estimated_latency_ms, selection.estimated_latency_ms)
            plan.estimated_cost += selection.estimated_cost

        logger.debug(
            f"Load balancing plan created: {len(plan.routes)}/{len(requests)} routed, "
            f"distribution={plan.load_distribution}"
        )
        return plan

    def _spread(self, selection: ModelSelection) -> ModelSelection:
        """Pick the least-used model among near-tied candidates"""
        epsilon = self.settings.near_tie_epsilon
        near_ties = [
            alt for alt in selection.alternatives
            if selection.confidence - alt.score <= epsilon
        ]

        with self._lock:
            if not near_ties:
                self._request_counts[selection.model_id] = self._request_counts.get(selection.model_id, 0) + 1
                return selection

            # rank order breaks ties between equal counts
            chosen_id = min(
                [selection.model_id] + [alt.model_id for alt in near_ties],
                key=lambda mid: self._request_counts.get(mid, 0),
            )
            self._request_counts[chosen_id] = self._request_counts.get(chosen_id, 0) + 1

        if chosen_id == selection.model_id:
            return selection

        candidate = next(alt for alt in near_ties if alt.model_id == chosen_id)
        # the displaced top pick stays first among the alternates
        ranked = ([selection.candidate] if selection.candidate else []) + selection.alternatives
        others = [c for c in ranked if c.model_id != chosen_id][:self.settings.max_alternatives]
        spread = ModelSelection.from_candidate(candidate, alternatives=others, request_id=selection.request_id)
        spread.reasoning.append(
            f"load_balance: near-tie with {selection.model_id} "
            f"(delta {selection.confidence - candidate.score:.3f})"
        )
        return spread

    def get_request_counts(self) -> Dict[str, int]:
        with self._lock:
            return dict(self._request_counts)

    def reset_counts(self):
        with self._lock:
            self._request_counts.clear()
