# llave_system/events/handlers.py
"""
Event handlers for the Llave engine.
Process events from the event bus.
"""
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)


async def handle_key_acquired(data: Dict[str, Any]):
    """
    Handle KEY_ACQUIRED event.

    Args:
        data: {'agentId', 'weekDate', 'sales30d', 'firstTime'}
    """
    agent_id = data.get("agentId")
    if agent_id is None:
        logger.error("KEY_ACQUIRED event missing agentId")
        return

    if data.get("firstTime"):
        logger.info(f"🔑 Agent {agent_id} attained the Key for the first time (week {data.get('weekDate')})")
    else:
        logger.info(f"🔑 Agent {agent_id} regained the Key (week {data.get('weekDate')})")


async def handle_key_lost(data: Dict[str, Any]):
    """Handle KEY_LOST event: downline chains through this agent are now broken."""
    agent_id = data.get("agentId")
    if agent_id is None:
        logger.error("KEY_LOST event missing agentId")
        return

    logger.warning(
        f"Agent {agent_id} lost the Key (sales30d={data.get('sales30d')}); "
        f"upline commissions through this agent stop this week"
    )


async def handle_campaign_overflowed(data: Dict[str, Any]):
    """Handle CAMPAIGN_OVERFLOWED event."""
    logger.info(
        f"Campaign {data.get('campaignId')} overflowed {data.get('overflowOut')} "
        f"into campaign {data.get('childCampaignId')} (week {data.get('weekDate')})"
    )


async def handle_week_recomputed(data: Dict[str, Any]):
    """Handle WEEK_RECOMPUTED event: one-line summary of the pass."""
    logger.info(
        f"Week {data.get('weekDate')} recomputed: "
        f"{data.get('agentsEvaluated', 0)} agents, "
        f"{data.get('agentsWithKey', 0)} with Key, "
        f"{data.get('snapshotsWritten', 0)} snapshots, "
        f"{data.get('campaignsCreated', 0)} campaigns created"
    )
