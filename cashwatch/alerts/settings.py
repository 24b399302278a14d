"""Per-user alert settings access."""
import logging
from typing import Any, Dict

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AlertSettings

logger = logging.getLogger(__name__)


async def get_or_create_settings(db: AsyncSession, user_id: str) -> AlertSettings:
    """
    Returns existing alert settings or creates a row with defaults.

    Defaults: $25,000 buffer, 30 warning days, 14 critical days,
    email notifications on.
    """
    result = await db.execute(
        select(AlertSettings).where(AlertSettings.user_id == user_id)
    )
    alert_settings = result.scalar_one_or_none()

    if not alert_settings:
        alert_settings = AlertSettings(
            user_id=user_id,
            # All other fields use model defaults
        )
        db.add(alert_settings)
        await db.flush()
        logger.info(f"Created default alert settings for user {user_id}")

    return alert_settings


async def update_alert_settings(db: AsyncSession, user_id: str, updates: Dict[str, Any]) -> AlertSettings:
    """Apply only the provided fields. Creates the row first if missing."""
    alert_settings = await get_or_create_settings(db, user_id)

    for field, value in updates.items():
        if value is None:
            continue
        setattr(alert_settings, field, value)

    await db.flush()
    return alert_settings
