"""
Alert enums and in-memory alert structures.

Shared by the pure detector, the recommendation generators and the ORM
layer. Kept free of database imports so detection stays testable on its own.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Tuple


class AlertType(str, Enum):
    """Kinds of cash gap alerts."""
    BUFFER_BREACH = "buffer_breach"          # Cash below minimum buffer
    CASH_GAP = "cash_gap"                    # Cash projected negative
    EXPENSE_SPIKE = "expense_spike"          # Outflow > 2x weekly average
    REVENUE_DROP = "revenue_drop"            # Inflow < 70% of weekly average
    CUSTOM_THRESHOLD = "custom_threshold"    # User-defined rule matched


class AlertSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    """Lifecycle of a stored alert."""
    ACTIVE = "active"              # Detected, needs attention
    ACKNOWLEDGED = "acknowledged"  # User has seen it
    RESOLVED = "resolved"          # Resolved by user or condition cleared
    DISMISSED = "dismissed"        # User dismissed without action


# Alerts still considered open for reconciliation
OPEN_STATUSES = (AlertStatus.ACTIVE, AlertStatus.ACKNOWLEDGED)


class TriggerType(str, Enum):
    MINIMUM_CASH_BREACH = "minimum_cash_breach"
    PROJECTED_NEGATIVE_CASH = "projected_negative_cash"
    LARGE_EXPENSE_UPCOMING = "large_expense_upcoming"
    PAYMENT_DELAY_RISK = "payment_delay_risk"
    CUSTOM_RULE = "custom_rule"


class RecommendationType(str, Enum):
    ACCELERATE_COLLECTIONS = "accelerate_collections"
    DELAY_EXPENSES = "delay_expenses"
    SECURE_FINANCING = "secure_financing"
    ADJUST_PRICING = "adjust_pricing"
    REDUCE_COSTS = "reduce_costs"
    NEGOTIATE_TERMS = "negotiate_terms"


SEVERITY_WEIGHTS = {
    AlertSeverity.CRITICAL: 4,
    AlertSeverity.HIGH: 3,
    AlertSeverity.MEDIUM: 2,
    AlertSeverity.LOW: 1,
}


def severity_weight(severity) -> int:
    return SEVERITY_WEIGHTS[AlertSeverity(severity)]


@dataclass(frozen=True)
class AlertTrigger:
    """The threshold comparison that produced an alert."""
    type: TriggerType
    threshold: float
    actual_value: float
    description: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "threshold": self.threshold,
            "actual_value": self.actual_value,
            "description": self.description,
        }


@dataclass(frozen=True)
class AlertRecommendation:
    """A ranked remediation action."""
    type: RecommendationType
    title: str
    description: str
    impact: str
    urgency: AlertSeverity
    estimated_improvement: float
    time_to_implement: str
    difficulty: str  # "easy" | "medium" | "hard"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "title": self.title,
            "description": self.description,
            "impact": self.impact,
            "urgency": self.urgency.value,
            "estimated_improvement": self.estimated_improvement,
            "time_to_implement": self.time_to_implement,
            "difficulty": self.difficulty,
        }


@dataclass
class AlertCandidate:
    """An alert produced by one detection run, before reconciliation."""
    user_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str
    description: str
    projected_shortfall: float
    projected_date: date
    week_number: int
    triggers: List[AlertTrigger] = field(default_factory=list)
    recommendations: List[AlertRecommendation] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, date]:
        """Identity used for deduplication and reconciliation."""
        return (self.user_id, self.alert_type.value, self.projected_date)

    @property
    def days_until_shortfall(self) -> int:
        return self.metadata.get("days_until_shortfall", 0)

    def triggers_as_dicts(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self.triggers]

    def recommendations_as_dicts(self) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in self.recommendations]
