# llave_system/services/directory_loader.py
"""
Boundary between the agent directory and the pure calculators.
Validates raw rows/dicts and turns them into AgentRecord snapshots.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Mapping
from sqlalchemy.orm import Session
import logging

from models.agent import Agent
from llave_system.errors import ValidationError
from llave_system.types import AgentRecord
from llave_system.utils.downline_index import DownlineIndex

logger = logging.getLogger(__name__)


def _parseSales(agentId: Any, raw: Any) -> Decimal:
    if raw is None:
        raise ValidationError(f"Agent {agentId!r} is missing sales30d")
    if isinstance(raw, bool):
        raise ValidationError(f"Agent {agentId!r} has non-numeric sales30d {raw!r}")
    try:
        sales = raw if isinstance(raw, Decimal) else Decimal(str(raw))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Agent {agentId!r} has non-numeric sales30d {raw!r}")

    if not sales.is_finite():
        raise ValidationError(f"Agent {agentId!r} has non-finite sales30d {raw!r}")
    if sales < 0:
        raise ValidationError(f"Agent {agentId!r} has negative sales30d {sales}")
    return sales


def recordFromMapping(data: Mapping[str, Any]) -> AgentRecord:
    """
    Build an AgentRecord from a directory payload {id, parentId, sales30d[, name]}.

    Raises:
        ValidationError: missing id, missing/negative/non-numeric sales
    """
    agentId = data.get("id")
    if agentId is None:
        raise ValidationError(f"Directory entry without id: {dict(data)!r}")

    parentId = data.get("parentId")
    if parentId == agentId:
        raise ValidationError(f"Agent {agentId!r} cannot refer itself")

    return AgentRecord(
        agentId=agentId,
        parentId=parentId,
        sales30d=_parseSales(agentId, data.get("sales30d")),
        name=data.get("name"),
    )


def recordFromModel(agent: Agent) -> AgentRecord:
    """Build an AgentRecord from a models.Agent row."""
    return recordFromMapping({
        "id": agent.agentID,
        "parentId": agent.parentID,
        "sales30d": agent.sales30d,
        "name": agent.name,
    })


def buildRecords(entries: Iterable[Mapping[str, Any]]) -> List[AgentRecord]:
    return [recordFromMapping(entry) for entry in entries]


def buildIndex(entries: Iterable[Mapping[str, Any]]) -> DownlineIndex:
    """
    Validate a directory payload and build the downline index.

    Raises:
        ValidationError: malformed entry
        DataIntegrityError: duplicated ids, dangling parent, cycle
    """
    return DownlineIndex(buildRecords(entries))


class DirectoryLoader:
    """Loads the whole agent directory from the store as one snapshot."""

    def __init__(self, session: Session):
        self.session = session

    def loadRecords(self) -> List[AgentRecord]:
        agents = self.session.query(Agent).order_by(Agent.agentID).all()
        records = [recordFromModel(agent) for agent in agents]
        logger.debug(f"Loaded {len(records)} agents from directory")
        return records

    def loadIndex(self) -> DownlineIndex:
        return DownlineIndex(self.loadRecords())

    def loadModels(self) -> Dict[int, Agent]:
        """agentID -> Agent row, for write-back of evaluated Key flags."""
        return {agent.agentID: agent for agent in self.session.query(Agent).all()}
