"""
Pydantic schemas for cash gap alerts and alert settings.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class NotificationTimingSchema(BaseModel):
    """When and how often to notify before a shortfall."""
    days_before_shortfall: int = Field(..., ge=0, le=365)
    repeat_interval: Literal["once", "daily", "weekly"] = "once"
    channels: List[Literal["email", "sms", "slack", "in_app"]] = Field(default_factory=list)


class CustomRuleSchema(BaseModel):
    """User-defined threshold on a weekly forecast metric."""
    name: str
    condition: Literal[
        "cumulative_position",
        "net_position",
        "projected_inflow",
        "projected_outflow",
        "confidence_score",
    ]
    threshold: float
    operator: Literal["less_than", "greater_than", "equals"] = "less_than"
    severity: Literal["low", "medium", "high", "critical"] = "medium"
    enabled: bool = True


class AlertSettingsUpdate(BaseModel):
    """Schema for updating alert settings. All fields optional."""
    minimum_cash_buffer: Optional[float] = Field(
        default=None,
        ge=0,
        description="Minimum cash balance before a buffer breach alert"
    )
    warning_threshold_days: Optional[int] = Field(
        default=None,
        ge=1,
        le=365,
        description="Breaches within this many days are high severity"
    )
    critical_threshold_days: Optional[int] = Field(
        default=None,
        ge=0,
        le=365,
        description="Breaches within this many days are critical"
    )
    enable_email_notifications: Optional[bool] = None
    enable_sms_notifications: Optional[bool] = None
    enable_slack_notifications: Optional[bool] = None
    notification_timing: Optional[List[NotificationTimingSchema]] = None
    custom_rules: Optional[List[CustomRuleSchema]] = None


class AlertSettingsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    minimum_cash_buffer: float
    warning_threshold_days: int
    critical_threshold_days: int
    enable_email_notifications: bool
    enable_sms_notifications: bool
    enable_slack_notifications: bool
    notification_timing: List[Dict[str, Any]]
    custom_rules: List[Dict[str, Any]]


class AlertResponse(BaseModel):
    """A stored cash gap alert."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    alert_type: str
    severity: str
    status: str
    title: str
    description: Optional[str] = None
    projected_shortfall: float
    projected_date: date
    week_number: int
    triggers: List[Dict[str, Any]]
    recommendations: List[Dict[str, Any]]
    metadata: Dict[str, Any] = Field(default_factory=dict, validation_alias=AliasChoices("extra_data", "metadata"))
    created_at: Optional[datetime] = None
    acknowledged_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    dismissed_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    dismiss_reason: Optional[str] = None


class AlertListResponse(BaseModel):
    alerts: List[AlertResponse]
    total: int


class MonitorResponse(BaseModel):
    """Result of one monitoring run."""
    alerts: List[AlertResponse]
    summary: Dict[str, Any]
    error: Optional[str] = None


class ResolveAlertRequest(BaseModel):
    notes: Optional[str] = None


class DismissAlertRequest(BaseModel):
    reason: Optional[str] = None
