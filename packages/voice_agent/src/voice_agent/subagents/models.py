"""Sub-agent models."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from voice_agent.agent.metrics import LoopMetrics

FinishStatus = Literal["success", "failed"]
SubagentStatus = Literal["success", "failed", "timeout"]


@dataclass(frozen=True)
class SubagentOutcome:
    """Classified result of one headless run."""

    status: SubagentStatus
    message: str
    run_id: str
    iterations_used: int = 0
    error: str | None = None
    metrics: LoopMetrics | None = None
    action_log: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status == "success"


@dataclass(frozen=True)
class TriageOutcome:
    """Result of one notification triage run."""

    text: str
    matched: bool
    iterations_used: int
    fast_path: bool
    timed_out: bool = False
