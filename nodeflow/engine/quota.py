"""
Quota Gate - decides whether the team owning an agent may run a generation.

The gate is consulted once per execution attempt and never caches. The
decision itself comes from a QuotaService; UsageLimitQuotaService derives
it from agent-time usage:

- restricted teams get a limit of 0
- pro teams are unlimited
- everyone else gets the free limit
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

from nodeflow.config import DEFAULT_FREE_AGENT_TIME_LIMIT_MINUTES
from nodeflow.errors import AgentNotFoundError, DataIntegrityError, QuotaExceededError
from nodeflow.graph.model import AgentId

logger = logging.getLogger(__name__)


class PlanTier(StrEnum):
    FREE = "free"
    PRO = "pro"


@dataclass(frozen=True)
class Team:
    id: str
    name: str = ""
    type: str = "customer"
    plan: PlanTier = PlanTier.FREE
    active_subscription_id: str | None = None

    @property
    def is_pro_plan(self) -> bool:
        if self.type == "internal":
            return True
        return self.active_subscription_id is not None and self.plan == PlanTier.PRO


class TeamDirectory(Protocol):
    async def find_teams_for_agent(self, agent_id: AgentId) -> list[Team]: ...


class QuotaService(Protocol):
    async def is_time_available(self, team: Team) -> bool: ...


class QuotaGate:
    """Authorizes executions against the owning team's quota."""

    def __init__(self, team_directory: TeamDirectory, quota_service: QuotaService):
        self._team_directory = team_directory
        self._quota_service = quota_service

    async def find_team(self, agent_id: AgentId) -> Team:
        teams = await self._team_directory.find_teams_for_agent(agent_id)
        if not teams:
            raise AgentNotFoundError(agent_id)
        if len(teams) > 1:
            raise DataIntegrityError(
                f"Agent {agent_id} belongs to {len(teams)} teams, expected exactly one"
            )
        return teams[0]

    async def authorize(self, agent_id: AgentId) -> Team:
        """
        Return the owning team if it has agent time left.

        Raises:
            AgentNotFoundError: no team owns the agent
            DataIntegrityError: several teams claim the agent
            QuotaExceededError: the team has no agent time left
        """
        team = await self.find_team(agent_id)
        if not await self._quota_service.is_time_available(team):
            logger.info("Quota exhausted for team %s (agent %s)", team.id, agent_id)
            raise QuotaExceededError(agent_id)
        return team


# ---------------------------------------------------------------------------
# Usage limits
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ResourceLimit:
    limit: float
    used: float

    @property
    def available(self) -> bool:
        return self.used < self.limit


@dataclass(frozen=True)
class UsageLimits:
    feature_tier: PlanTier
    agent_time: ResourceLimit


class AgentTimeUsageSource(Protocol):
    async def calculate_agent_time_usage_ms(self, team: Team) -> float: ...

    async def fetch_restricted_team_ids(self) -> set[str]: ...


def agent_time_limit_ms(
    team: Team,
    restricted_team_ids: set[str],
    free_limit_minutes: int = DEFAULT_FREE_AGENT_TIME_LIMIT_MINUTES,
) -> float:
    if team.id in restricted_team_ids:
        return 0
    if team.is_pro_plan:
        return math.inf
    return free_limit_minutes * 60 * 1000


class UsageLimitQuotaService:
    """QuotaService backed by recorded agent-time usage."""

    def __init__(
        self,
        usage_source: AgentTimeUsageSource,
        free_limit_minutes: int = DEFAULT_FREE_AGENT_TIME_LIMIT_MINUTES,
    ):
        self._usage_source = usage_source
        self._free_limit_minutes = free_limit_minutes

    async def get_usage_limits(self, team: Team) -> UsageLimits:
        restricted = await self._usage_source.fetch_restricted_team_ids()
        used = await self._usage_source.calculate_agent_time_usage_ms(team)
        limit = agent_time_limit_ms(team, restricted, self._free_limit_minutes)
        tier = PlanTier.PRO if team.is_pro_plan else PlanTier.FREE
        return UsageLimits(feature_tier=tier, agent_time=ResourceLimit(limit=limit, used=used))

    async def is_time_available(self, team: Team) -> bool:
        limits = await self.get_usage_limits(team)
        return limits.agent_time.available


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------


class InMemoryTeamDirectory:
    def __init__(self, teams_by_agent: dict[AgentId, list[Team]] | None = None):
        self.teams_by_agent = dict(teams_by_agent or {})

    async def find_teams_for_agent(self, agent_id: AgentId) -> list[Team]:
        return list(self.teams_by_agent.get(agent_id, []))


class InMemoryUsageSource:
    def __init__(
        self,
        usage_ms: dict[str, float] | None = None,
        restricted_team_ids: set[str] | None = None,
    ):
        self.usage_ms = dict(usage_ms or {})
        self.restricted_team_ids = set(restricted_team_ids or ())

    async def calculate_agent_time_usage_ms(self, team: Team) -> float:
        return self.usage_ms.get(team.id, 0.0)

    async def fetch_restricted_team_ids(self) -> set[str]:
        return set(self.restricted_team_ids)


class StaticQuotaService:
    """Always answers the same. Useful for local runs."""

    def __init__(self, available: bool = True):
        self.available = available
        self.checks: list[str] = []

    async def is_time_available(self, team: Team) -> bool:
        self.checks.append(team.id)
        return self.available
