"""Forecast API routes."""
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from cashwatch.forecast.schemas import CashFlowAnalysisResponse
from cashwatch.forecast.service import CashFlowForecastService
from cashwatch.forecast.types import ForecastOptions

router = APIRouter()


def get_forecast_service() -> CashFlowForecastService:
    return CashFlowForecastService()


@router.get("", response_model=CashFlowAnalysisResponse)
async def get_forecast(
    user_id: str = Query(..., description="User ID"),
    start_date: Optional[date] = Query(None, description="First week ending (defaults to next Monday)"),
    include_scenarios: bool = Query(True, description="Compute conservative and optimistic too"),
    service: CashFlowForecastService = Depends(get_forecast_service),
):
    """
    Get the 13-week multi-scenario cash flow forecast for a user.

    Returns scenarios, insights, critical alerts, recommendations and
    summary metrics.
    """
    analysis = await service.generate_forecast(
        user_id,
        ForecastOptions(start_date=start_date, include_scenarios=include_scenarios),
    )
    if analysis.error:
        raise HTTPException(status_code=500, detail=f"Error calculating forecast: {analysis.error}")
    return CashFlowAnalysisResponse.from_analysis(analysis)
