import logging
import threading
from collections import deque
from typing import Dict, Any, List, Optional, Deque, Tuple, Union
from dataclasses import dataclass, asdict, replace
from datetime import datetime, timezone

from model_router.models import AIRequestType

logger = logging.getLogger(__name__)


@dataclass
class PerformanceRecord:
    """Exponential moving averages for one (model, task type) pair"""
    model_id: str
    task_type: str
    success_rate: float
    average_latency_ms: float
    average_cost: float
    quality_rating: float
    total_requests: int
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["last_updated"] = self.last_updated.isoformat()
        return data


def _task_key(task_type: Union[AIRequestType, str]) -> str:
    return task_type.value if isinstance(task_type, AIRequestType) else str(task_type)


class PerformanceTracker:
    """
    Rolling performance statistics per (model, task type)

    Also keeps the last `window` routing outcomes per model, which the Health
    Monitor turns into an error rate.
    """

    def __init__(self, alpha: float = 0.1, window: int = 100):
        """
        Initialize the tracker

        Args:
            alpha: EMA learning rate applied to every update
            window: Number of recent outcomes kept per model
        """
        if not 0 < alpha <= 1:
            raise ValueError("alpha must be in (0, 1]")
        self.alpha = alpha
        self.window = window
        self._records: Dict[Tuple[str, str], PerformanceRecord] = {}
        self._outcomes: Dict[str, Deque[bool]] = {}
        self._locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._outcome_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def _lock_for(self, key: Tuple[str, str]) -> threading.Lock:
        with self._registry_lock:
            return self._locks.setdefault(key, threading.Lock())

    def _outcome_lock_for(self, model_id: str) -> threading.Lock:
        with self._registry_lock:
            return self._outcome_locks.setdefault(model_id, threading.Lock())

    def record_performance(
        self,
        model_id: str,
        task_type: Union[AIRequestType, str],
        latency: float,
        cost: float,
        quality: float,
        success: bool
    ) -> PerformanceRecord:
        """
        Fold one observation into the (model, task type) record

        Args:
            model_id: Model that served the request
            task_type: Request task type
            latency: Observed latency in milliseconds
            cost: Observed cost of the request
            quality: Observed quality rating (0-1)
            success: Whether the request succeeded

        Returns:
            Snapshot of the updated record
        """
        key = (model_id, _task_key(task_type))
        alpha = self.alpha

        with self._lock_for(key):
            existing = self._records.get(key)
            if existing:
                existing.average_latency_ms = existing.average_latency_ms * (1 - alpha) + latency * alpha
                existing.average_cost = existing.average_cost * (1 - alpha) + cost * alpha
                existing.quality_rating = existing.quality_rating * (1 - alpha) + quality * alpha
                existing.success_rate = existing.success_rate * (1 - alpha) + (1.0 if success else 0.0) * alpha
                existing.total_requests += 1
                existing.last_updated = datetime.now(timezone.utc)
                record = existing
            else:
                record = PerformanceRecord(
                    model_id=model_id,
                    task_type=key[1],
                    success_rate=1.0 if success else 0.0,
                    average_latency_ms=latency,
                    average_cost=cost,
                    quality_rating=quality,
                    total_requests=1,
                    last_updated=datetime.now(timezone.utc),
                )
                with self._registry_lock:
                    self._records[key] = record
            snapshot = replace(record)

        with self._outcome_lock_for(model_id):
            outcomes = self._outcomes.setdefault(model_id, deque(maxlen=self.window))
            outcomes.append(success)

        logger.debug(
            f"Recorded performance for {model_id}/{key[1]}: success={success}, "
            f"latency={latency:.1f}ms, total={snapshot.total_requests}"
        )
        return snapshot

    def get_record(self, model_id: str, task_type: Union[AIRequestType, str]) -> Optional[PerformanceRecord]:
        key = (model_id, _task_key(task_type))
        with self._lock_for(key):
            record = self._records.get(key)
            return replace(record) if record else None

    def records_for(self, model_id: str) -> List[PerformanceRecord]:
        with self._registry_lock:
            keys = [k for k in self._records if k[0] == model_id]
        return [r for r in (self.get_record(*k) for k in keys) if r]

    def error_rate(self, model_id: str) -> float:
        """Fraction of failed outcomes among the last `window` for a model"""
        with self._outcome_lock_for(model_id):
            outcomes = self._outcomes.get(model_id)
            if not outcomes:
                return 0.0
            return sum(1 for ok in outcomes if not ok) / len(outcomes)

    def outcome_count(self, model_id: str) -> int:
        with self._outcome_lock_for(model_id):
            return len(self._outcomes.get(model_id, ()))

    def reset_outcomes(self, model_id: str):
        with self._outcome_lock_for(model_id):
            self._outcomes.pop(model_id, None)

    def forget_outcomes(self, model_id: str):
        """Drop the outcome window of a removed model; its records are kept"""
        with self._registry_lock:
            lock = self._outcome_locks.pop(model_id, None)
        if lock is not None:
            with lock:
                self._outcomes.pop(model_id, None)

    def model_analytics(self, model_id: str) -> Dict[str, Any]:
        """
        Summarize tracked performance of a model across task types

        Returns:
            Dictionary with per-task breakdown, averages and recommendations
        """
        records = self.records_for(model_id)
        breakdown = {r.task_type: r.to_dict() for r in records}
        recommendations: List[str] = []

        if not records:
            return {
                "model_id": model_id,
                "task_type_breakdown": {},
                "total_requests": 0,
                "error_rate": self.error_rate(model_id),
                "recommendations": recommendations,
            }

        avg_quality = sum(r.quality_rating for r in records) / len(records)
        avg_latency = sum(r.average_latency_ms for r in records) / len(records)
        avg_success = sum(r.success_rate for r in records) / len(records)

        if avg_quality < 0.7:
            recommendations.append("Consider using this model for simpler tasks only")
        if avg_latency > 10000:
            recommendations.append("This model may be too slow for time-sensitive tasks")

        return {
            "model_id": model_id,
            "task_type_breakdown": breakdown,
            "total_requests": sum(r.total_requests for r in records),
            "avg_quality": avg_quality,
            "avg_latency_ms": avg_latency,
            "avg_success_rate": avg_success,
            "error_rate": self.error_rate(model_id),
            "recommendations": recommendations,
        }
