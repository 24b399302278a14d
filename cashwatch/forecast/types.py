"""
Forecast value types.

Plain dataclasses passed between the data loader, the pure forecast engine
and the alert monitor. Nothing in here touches the database.
"""
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Dict, Any


class ScenarioType(str, Enum):
    """Forecast scenario variants."""
    CONSERVATIVE = "conservative"
    REALISTIC = "realistic"
    OPTIMISTIC = "optimistic"


class RiskLevel(str, Enum):
    """Weekly risk classification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# Multiplier applied to every payment probability
SCENARIO_PROBABILITY_MULTIPLIERS = {
    ScenarioType.CONSERVATIVE: 0.7,   # 30% haircut
    ScenarioType.REALISTIC: 1.0,
    ScenarioType.OPTIMISTIC: 1.2,     # 20% boost
}

# Multiplier applied to every expense occurrence
SCENARIO_EXPENSE_BUFFERS = {
    ScenarioType.CONSERVATIVE: 1.1,   # Buffer for unexpected costs
    ScenarioType.REALISTIC: 1.0,
    ScenarioType.OPTIMISTIC: 0.95,    # Savings from optimization
}

SCENARIO_NAMES = {
    ScenarioType.CONSERVATIVE: "Conservative (Safety First)",
    ScenarioType.REALISTIC: "Realistic (Most Likely)",
    ScenarioType.OPTIMISTIC: "Optimistic (Best Case)",
}

SCENARIO_ASSUMPTIONS = {
    ScenarioType.CONSERVATIVE: {
        "payment_delay_factor": 1.3,
        "collection_rate": 0.7,
        "expense_buffer": 1.1,
        "description": "Assumes slower payments, higher expenses, collection challenges",
    },
    ScenarioType.REALISTIC: {
        "payment_delay_factor": 1.0,
        "collection_rate": 0.85,
        "expense_buffer": 1.0,
        "description": "Based on historical patterns and current trends",
    },
    ScenarioType.OPTIMISTIC: {
        "payment_delay_factor": 0.8,
        "collection_rate": 0.95,
        "expense_buffer": 0.95,
        "description": "Assumes faster payments, cost savings, optimal conditions",
    },
}


@dataclass(frozen=True)
class ForecastParameters:
    """
    Tunable constants of the forecast model.

    Built from Settings in production; tests construct it directly.
    """
    weeks: int = 13
    market_factor: float = 1.0

    # Share of the blended probability taken from client reliability (0-1)
    reliability_weight: float = 0.5
    default_probability: float = 50.0  # Percentage points

    # Typical payment window around client's avg_payment_days
    payment_window_bonus: float = 20.0
    payment_window_days_before: int = 3
    payment_window_days_after: int = 7

    overdue_penalty_per_day: float = 2.0
    overdue_penalty_cap: float = 40.0

    time_decay_rate: float = 0.95
    max_runway_days: int = 365


# =============================================================================
# Inputs
# =============================================================================

@dataclass(frozen=True)
class InvoiceInput:
    """An unpaid invoice."""
    id: str
    client_id: Optional[str]
    amount: float
    issue_date: date
    due_date: date
    status: str = "sent"
    base_probability: Optional[float] = None  # 0-1


@dataclass(frozen=True)
class ClientProfileInput:
    """Aggregated payment behaviour of one client."""
    client_id: str
    avg_payment_days: float = 30.0
    reliability_score: float = 50.0  # 0-100
    client_name: Optional[str] = None


@dataclass(frozen=True)
class RecurringExpenseInput:
    """A recurring (or one-off) expense."""
    amount: float
    next_due_date: date
    frequency: str = "monthly"
    active: bool = True
    name: Optional[str] = None
    id: Optional[str] = None


@dataclass(frozen=True)
class PaymentRecordInput:
    """A historical payment; only the count matters to the model."""
    date: date
    amount: float


@dataclass
class ForecastInputs:
    """Everything one forecast run reads from the data store."""
    current_cash: float = 0.0
    invoices: List[InvoiceInput] = field(default_factory=list)
    expenses: List[RecurringExpenseInput] = field(default_factory=list)
    payment_history: List[PaymentRecordInput] = field(default_factory=list)
    client_profiles: List[ClientProfileInput] = field(default_factory=list)

    def profiles_by_client(self) -> Dict[str, ClientProfileInput]:
        return {p.client_id: p for p in self.client_profiles}

    def overdue_invoices(self, today: date) -> List[InvoiceInput]:
        return [inv for inv in self.invoices if inv.due_date < today]


@dataclass
class ForecastOptions:
    """Caller options for a forecast run."""
    start_date: Optional[date] = None
    include_scenarios: bool = True


# =============================================================================
# Outputs
# =============================================================================

@dataclass(frozen=True)
class WeeklyForecast:
    """Projection for a single week within one scenario."""
    week_ending: date
    projected_inflow: float
    projected_outflow: float
    net_position: float
    cumulative_position: float
    confidence_score: float
    risk_level: RiskLevel
    cash_runway_days: int
    seasonal_factor: float
    market_factor: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "week_ending": self.week_ending.isoformat(),
            "projected_inflow": self.projected_inflow,
            "projected_outflow": self.projected_outflow,
            "net_position": self.net_position,
            "cumulative_position": self.cumulative_position,
            "confidence_score": self.confidence_score,
            "risk_level": self.risk_level.value,
            "cash_runway_days": self.cash_runway_days,
            "seasonal_factor": self.seasonal_factor,
            "market_factor": self.market_factor,
        }


@dataclass(frozen=True)
class ScenarioForecast:
    """A complete 13-week run of one scenario."""
    type: ScenarioType
    name: str
    assumptions: Dict[str, Any]
    starting_cash: float
    forecasts: List[WeeklyForecast]
    total_projected_cash: float
    minimum_cash_position: float
    worst_week: Optional[date]
    average_weekly_burn: float

    @property
    def average_weekly_inflow(self) -> float:
        if not self.forecasts:
            return 0.0
        return sum(f.projected_inflow for f in self.forecasts) / len(self.forecasts)

    @property
    def average_confidence(self) -> float:
        if not self.forecasts:
            return 0.0
        return sum(f.confidence_score for f in self.forecasts) / len(self.forecasts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "name": self.name,
            "assumptions": self.assumptions,
            "starting_cash": self.starting_cash,
            "forecasts": [f.to_dict() for f in self.forecasts],
            "total_projected_cash": self.total_projected_cash,
            "minimum_cash_position": self.minimum_cash_position,
            "worst_week": self.worst_week.isoformat() if self.worst_week else None,
            "average_weekly_burn": self.average_weekly_burn,
        }


@dataclass(frozen=True)
class CashFlowInsight:
    """A qualitative finding derived from the realistic scenario."""
    type: str  # "opportunity" | "risk" | "pattern" | "optimization"
    title: str
    description: str
    impact_amount: float
    confidence_level: float
    actionable: bool
    recommended_actions: List[str]
    timeframe: str


@dataclass(frozen=True)
class CashFlowAlert:
    """Analysis-level alert returned with a forecast (not persisted)."""
    severity: str
    type: str
    message: str
    projected_date: date
    impact_amount: float
    suggested_actions: List[str]
    days_to_impact: int


@dataclass(frozen=True)
class CashFlowRecommendation:
    """Analysis-level improvement recommendation."""
    category: str  # "payment_terms" | "collection" | "expense_timing" | "funding" | "pricing"
    priority: str
    title: str
    description: str
    estimated_impact: float
    implementation_effort: str
    time_to_implement: str
    steps: List[str]


@dataclass(frozen=True)
class CashFlowSummary:
    """Headline metrics of the realistic scenario."""
    current_cash_position: float
    projected_cash_in_13_weeks: float
    total_inflow_next_13_weeks: float
    total_outflow_next_13_weeks: float
    net_cash_flow_13_weeks: float
    cash_runway_days: int
    risk_score: int
    health_score: int


@dataclass
class CashFlowAnalysis:
    """Result of a forecast run. `error` is set when the run failed."""
    scenarios: List[ScenarioForecast] = field(default_factory=list)
    key_insights: List[CashFlowInsight] = field(default_factory=list)
    critical_alerts: List[CashFlowAlert] = field(default_factory=list)
    recommendations: List[CashFlowRecommendation] = field(default_factory=list)
    summary_metrics: Optional[CashFlowSummary] = None
    generated_for: Optional[date] = None
    error: Optional[str] = None

    def scenario(self, scenario_type: ScenarioType) -> Optional[ScenarioForecast]:
        for s in self.scenarios:
            if s.type == scenario_type:
                return s
        return None

    @property
    def realistic(self) -> Optional[ScenarioForecast]:
        return self.scenario(ScenarioType.REALISTIC)
