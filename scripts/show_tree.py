#!/usr/bin/env python3
"""
Display the agent network tree.

Shows the downline with Key status and, for the chosen root, the
commission each member would pay this week.

Usage:
    python scripts/show_tree.py [--root-id AGENT_ID] [--max-depth DEPTH] [--stats]
"""

import sys
import os
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.db import get_session
from llave_system.services.commission_service import CommissionCalculator, getRelativeLevelLabel
from llave_system.services.directory_loader import DirectoryLoader
from llave_system.services.eligibility_service import getKeyStatus
from llave_system.config.rules import KeyStatus

import logging

logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

STATUS_MARKERS = {
    KeyStatus.ACTIVE: "🔑",
    KeyStatus.AT_RISK: "⚠️",
    KeyStatus.INACTIVE: "❌",
}


def print_tree(index, root, max_depth=None):
    """Print ASCII tree of the structure."""
    rootLevel = index.levelOf(root.agentId)

    def print_agent(agent, prefix="", is_last=True, depth=0):
        if max_depth is not None and depth > max_depth:
            return

        connector = "└─ " if is_last else "├─ "
        marker = STATUS_MARKERS[getKeyStatus(agent.sales30d)]
        relation = f"[{getRelativeLevelLabel(index.levelOf(agent.agentId), rootLevel)}]" if depth else ""

        print(f"{prefix}{connector}{marker} {agent.name} (ID:{agent.agentId}) ${agent.sales30d} {relation}")

        children = index.childrenOf(agent.agentId)
        for i, child in enumerate(children):
            is_last_child = (i == len(children) - 1)
            new_prefix = prefix + ("    " if is_last else "│   ")
            print_agent(child, new_prefix, is_last_child, depth + 1)

    print("\n" + "=" * 80)
    print("LLAVE NETWORK TREE")
    print("=" * 80)
    print("\nLegend:")
    print("  🔑 = Holds the Key (sales30d >= 15,000)")
    print("  ⚠️ = At risk (12,000 - 14,999)")
    print("  ❌ = No Key")
    print("  [hijo/nieto/bisnieto/tataranieto] = relation to root")
    print("\n" + "=" * 80 + "\n")
    print_agent(root)

    breakdown = CommissionCalculator(index).calculateCommissions(root.agentId)
    print(f"\nCommissions of {root.name} this week:")
    print(f"  Hijos:     ${breakdown.fromChildren}")
    print(f"  Nietos:    ${breakdown.fromGrandchildren}")
    print(f"  Bisnietos: ${breakdown.fromGreatGrandchildren}")
    print(f"  Total:     ${breakdown.total}")
    print("\n" + "=" * 80 + "\n")


def print_statistics(index):
    """Print directory statistics."""
    agents = index.agents()
    total = len(agents)

    print("\n" + "=" * 80)
    print("DIRECTORY STATISTICS")
    print("=" * 80 + "\n")

    print(f"Total agents: {total}")
    if not total:
        print("\n" + "=" * 80 + "\n")
        return

    for status in KeyStatus:
        count = sum(1 for a in agents if getKeyStatus(a.sales30d) == status)
        print(f"  {status.value:10} {count:3} ({count/total*100:.1f}%)")

    print(f"\nRoots: {len(index.roots())}")
    print(f"Deepest level: {max(index.levelOf(a.agentId) for a in agents)}")
    print("\n" + "=" * 80 + "\n")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description='Display agent network tree')
    parser.add_argument('--root-id', type=int,
                        help='Agent ID of the root (default: every top-level agent)')
    parser.add_argument('--max-depth', type=int,
                        help='Maximum depth to display')
    parser.add_argument('--stats', action='store_true',
                        help='Show statistics only')
    args = parser.parse_args()

    Config.initialize_from_env()

    session = get_session()
    try:
        index = DirectoryLoader(session).loadIndex()

        if args.stats:
            print_statistics(index)
            return

        if args.root_id is not None:
            root = index.get(args.root_id)
            if not root:
                print(f"❌ Agent with ID {args.root_id} not found!")
                return
            roots = [root]
        else:
            roots = index.roots()

        for root in roots:
            print_tree(index, root, args.max_depth)
        print_statistics(index)

    finally:
        session.close()


if __name__ == "__main__":
    main()
