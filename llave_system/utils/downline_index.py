# llave_system/utils/downline_index.py
"""
Downline index over an immutable agent snapshot.
Builds the id -> children adjacency once per pass and validates that the
parent graph is a forest (no cycles, no dangling parents).
"""
from collections import deque
from typing import Callable, Dict, Hashable, Iterable, List, Optional, Tuple
import logging

from llave_system.errors import DataIntegrityError
from llave_system.types import AgentRecord

logger = logging.getLogger(__name__)

# Callback(member, depth, path) where path holds the ids strictly between
# the start agent and the member (the connecting ancestors).
WalkCallback = Callable[[AgentRecord, int, Tuple[Hashable, ...]], None]


class DownlineIndex:
    """
    Read-only referral forest built from AgentRecord snapshots.

    Raises DataIntegrityError on construction when ids are duplicated, a
    parent id is unknown, or the parent graph contains a cycle.
    """

    def __init__(self, agents: Iterable[AgentRecord]):
        self._byId: Dict[Hashable, AgentRecord] = {}
        self._children: Dict[Hashable, List[AgentRecord]] = {}
        self._levels: Dict[Hashable, int] = {}

        for agent in agents:
            if agent.agentId in self._byId:
                raise DataIntegrityError(f"Duplicate agent id {agent.agentId!r}")
            self._byId[agent.agentId] = agent
            self._children.setdefault(agent.agentId, [])

        for agent in self._byId.values():
            if agent.parentId is None:
                continue
            if agent.parentId not in self._byId:
                raise DataIntegrityError(
                    f"Agent {agent.agentId!r} references unknown parent {agent.parentId!r}"
                )
            self._children[agent.parentId].append(agent)

        self._computeLevels()
        logger.debug(f"DownlineIndex built: {len(self._byId)} agents, {len(self.roots())} roots")

    def _computeLevels(self) -> None:
        """Assign tree levels, detecting cycles along the way."""
        for agentId in self._byId:
            if agentId in self._levels:
                continue

            path: List[Hashable] = []
            onPath = set()
            current = agentId

            while current is not None and current not in self._levels:
                if current in onPath:
                    cycle = path[path.index(current):]
                    logger.error(f"Cycle detected in parent graph: {cycle}")
                    raise DataIntegrityError(f"Cyclic parent graph through agents {cycle!r}")
                onPath.add(current)
                path.append(current)
                current = self._byId[current].parentId

            level = -1 if current is None else self._levels[current]
            for nodeId in reversed(path):
                level += 1
                self._levels[nodeId] = level

    # ═══════════════════════════════════════════════════════════════════
    # LOOKUPS
    # ═══════════════════════════════════════════════════════════════════

    def __len__(self) -> int:
        return len(self._byId)

    def __contains__(self, agentId: Hashable) -> bool:
        return agentId in self._byId

    def get(self, agentId: Hashable) -> Optional[AgentRecord]:
        return self._byId.get(agentId)

    def require(self, agentId: Hashable) -> AgentRecord:
        """Get agent or raise DataIntegrityError."""
        agent = self._byId.get(agentId)
        if agent is None:
            raise DataIntegrityError(f"Agent {agentId!r} not found in directory")
        return agent

    def agents(self) -> List[AgentRecord]:
        return list(self._byId.values())

    def roots(self) -> List[AgentRecord]:
        return [a for a in self._byId.values() if a.parentId is None]

    def childrenOf(self, agentId: Hashable) -> List[AgentRecord]:
        return list(self._children.get(agentId, []))

    def levelOf(self, agentId: Hashable) -> int:
        """Depth from the platform root: 0 for agents without a parent."""
        self.require(agentId)
        return self._levels[agentId]

    # ═══════════════════════════════════════════════════════════════════
    # WALKS
    # ═══════════════════════════════════════════════════════════════════

    def walkDownline(
            self,
            startId: Hashable,
            callback: WalkCallback,
            maxDepth: Optional[int] = None
    ) -> int:
        """
        Breadth-first walk below startId, calling callback for each member.

        Args:
            startId: Agent whose downline is walked (not passed to callback)
            callback: Function(member, depth, path)
            maxDepth: Deepest generation visited; None walks the whole subtree

        Returns:
            Number of members processed
        """
        self.require(startId)

        processed = 0
        visited = {startId}
        queue = deque([(startId, 0, ())])

        while queue:
            currentId, depth, path = queue.popleft()
            if maxDepth is not None and depth >= maxDepth:
                continue

            childPath = path + (currentId,) if depth > 0 else ()
            for child in self._children.get(currentId, []):
                if child.agentId in visited:
                    # Unreachable after validation; kept as a hard stop.
                    raise DataIntegrityError(f"Agent {child.agentId!r} reached twice from {startId!r}")
                visited.add(child.agentId)

                callback(child, depth + 1, childPath)
                processed += 1
                queue.append((child.agentId, depth + 1, childPath))

        return processed

    def getGenerations(self, viewerId: Hashable, maxDepth: int = 3) -> Dict[int, List[AgentRecord]]:
        """
        Partition the downline into generations by tree distance.

        Returns:
            {1: [children], 2: [grandchildren], ...} up to maxDepth
        """
        generations: Dict[int, List[AgentRecord]] = {d: [] for d in range(1, maxDepth + 1)}

        def collect(member: AgentRecord, depth: int, path: Tuple[Hashable, ...]) -> None:
            generations[depth].append(member)

        self.walkDownline(viewerId, collect, maxDepth)
        return generations

    def getAllDescendants(self, viewerId: Hashable) -> List[AgentRecord]:
        """Every member below viewerId at any depth (display only)."""
        members: List[AgentRecord] = []
        self.walkDownline(viewerId, lambda m, d, p: members.append(m))
        return members

    def getUplineChain(self, agentId: Hashable, maxDepth: Optional[int] = None) -> List[AgentRecord]:
        """Ancestors from the immediate parent up to the root."""
        chain: List[AgentRecord] = []
        current = self.require(agentId)

        while current.parentId is not None:
            if maxDepth is not None and len(chain) >= maxDepth:
                break
            current = self._byId[current.parentId]
            chain.append(current)

        return chain

    def relativeDepth(self, viewerId: Hashable, memberId: Hashable) -> Optional[int]:
        """
        Tree distance from viewer down to member.

        Returns:
            1 for a direct child, 2 for a grandchild, ...; None when member is
            not in the viewer's downline
        """
        self.require(viewerId)
        for depth, ancestor in enumerate(self.getUplineChain(memberId), start=1):
            if ancestor.agentId == viewerId:
                return depth
        return None
