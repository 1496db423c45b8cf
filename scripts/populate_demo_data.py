#!/usr/bin/env python3
# scripts/populate_demo_data.py
"""
Demo database population script.
Creates the María García network (6 generations) with trailing 30-day
sales, plus a few campaign sales, so the weekly recompute has something
realistic to chew on.

Usage:
    python scripts/populate_demo_data.py [--settle]

WARNING: This will DROP and recreate the database!
"""

import sys
import os
import argparse
import asyncio
from decimal import Decimal

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_db_session_ctx, setup_database, drop_all_tables
from models.agent import Agent
from llave_system.services.campaign_service import CampaignService
from llave_system.services.weekly_recompute_service import WeeklyRecomputeService
from llave_system.utils.time_machine import timeMachine

import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# ================================================================================
# CONFIGURATION
# ================================================================================

# (agentID, parentID, name, sales30d)
DEMO_NETWORK = [
    (1, None, "María García", 18500),

    # Hijos de María
    (2, 1, "Carlos Rodríguez", 16200),
    (3, 1, "Ana Martínez", 12800),
    (4, 1, "Roberto Mendoza", 19500),
    (5, 1, "Elena Vázquez", 15800),
    (6, 1, "Fernando Castro", 11200),

    # Nietos
    (7, 2, "Pedro López", 17100),
    (8, 2, "Laura Sánchez", 8500),
    (9, 3, "Sofía Hernández", 15500),
    (10, 3, "Alejandro Flores", 16800),
    (11, 4, "Patricia Navarro", 18200),
    (12, 4, "José Luis Ramos", 13500),
    (13, 5, "Raúl Herrera", 15200),
    (14, 6, "Jorge Ortiz", 16500),

    # Bisnietos
    (15, 7, "Diego Ramírez", 9200),
    (16, 7, "Gabriela Torres", 15900),
    (17, 8, "Ricardo Vargas", 7800),
    (18, 9, "Miguel Ángel Reyes", 17500),
    (19, 10, "Isabella Cruz", 15100),
    (20, 11, "Daniel Guerrero", 19800),
    (21, 11, "Carmen Delgado", 8900),
    (22, 12, "Adriana Moreno", 15600),
    (23, 13, "Natalia Campos", 16200),
    (24, 14, "Paula Medina", 17800),

    # Tataranietos and below (never pay commission to María)
    (25, 15, "Valentina Mora", 16400),
    (26, 18, "Camila Ortiz", 11500),
    (27, 20, "Lucía Peña", 18100),
    (28, 24, "Sebastián Rojas", 15300),
    (29, 25, "Andrés Jiménez", 15700),
    (30, 27, "Mateo Silva", 12200),
]

# (ownerID, guestID, guest sale amounts) for María's first campaign
DEMO_CAMPAIGN_SALES = [
    (1, 2, [650, 720]),
    (1, 3, [480]),
    (1, 4, [899]),
]


def _email_for(name: str) -> str:
    first = name.split()[0].lower()
    for accented, plain in (("á", "a"), ("é", "e"), ("í", "i"), ("ó", "o"), ("ú", "u")):
        first = first.replace(accented, plain)
    return f"{first}@pakoa.com"


def create_network(session) -> int:
    """Insert the demo agents. Returns number created."""
    for agent_id, parent_id, name, sales in DEMO_NETWORK:
        session.add(Agent(
            agentID=agent_id,
            parentID=parent_id,
            name=name,
            email=_email_for(name),
            sales30d=Decimal(sales),
        ))
    session.flush()
    logger.info(f"✓ Created {len(DEMO_NETWORK)} agents")
    return len(DEMO_NETWORK)


async def populate(settle: bool):
    """Create the network, settle the first week and attribute campaign sales."""
    lastClosed = timeMachine.lastClosedWeekDate

    with get_db_session_ctx() as session:
        create_network(session)

        # First settlement opens the root campaigns of every Key holder
        stats = await WeeklyRecomputeService(session).runWeek(lastClosed)
        logger.info(f"✓ Week {lastClosed} settled: {stats['campaignsCreated']} campaigns opened")

        campaignService = CampaignService(session)
        for owner_id, guest_id, amounts in DEMO_CAMPAIGN_SALES:
            campaign = campaignService.getUserCampaignsAsOwner(owner_id)[0]
            await campaignService.addParticipant(campaign.campaignID, owner_id, guest_id)
            for amount in amounts:
                await campaignService.attributeSale(campaign.campaignID, guest_id, amount)
        logger.info(f"✓ Attributed demo sales to {len(DEMO_CAMPAIGN_SALES)} guests")

    if settle:
        # Current week is still open; settle it as a preview
        with get_db_session_ctx() as session:
            await WeeklyRecomputeService(session).runWeek(timeMachine.currentWeekDate)
        logger.info(f"✓ Preview week {timeMachine.currentWeekDate} settled")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Populate demo Llave network')
    parser.add_argument('--settle', action='store_true',
                        help='Also settle the current (open) week as a preview')
    args = parser.parse_args()

    Config.initialize_from_env()

    logger.info("=" * 60)
    logger.info("POPULATING DEMO DATA")
    logger.info("=" * 60)

    drop_all_tables()
    setup_database()

    asyncio.run(populate(args.settle))

    logger.info("=" * 60)
    logger.info("✅ Demo data ready")
    logger.info("=" * 60)


if __name__ == "__main__":
    main()
