"""
Run-level agent base class.

An Agent owns one logical run: a closed tool set, a result store, a model
gateway and a retry supervisor. Concrete agents supply the tools, the
blocking policy, prompts and a result assembler.
"""

import logging
import uuid
from typing import Any, Optional

from ..exceptions import GatewayError
from ..models import AgentConfig
from ..tracing import RunTrace
from .assembler import Failed, ResultAssembler, RunOutcome, Success, outcome_to_dict
from .coordinator import BlockDecision, ToolCoordinator
from .gateway import ModelGateway
from .loop import ConversationLoop
from .retry import Attempt, RetrySupervisor
from .store import ResultStore
from .tools import ToolContext, ToolSet

logger = logging.getLogger(__name__)


class Agent:
    """Base class for a tool-orchestrating agent run."""

    name: str = "agent"
    min_completed_tools: int = 1

    def __init__(
        self,
        context: Any,
        gateway: ModelGateway,
        config: Optional[AgentConfig] = None,
        run_id: Optional[str] = None,
        trace: Optional[RunTrace] = None,
    ):
        self.context = context
        self.gateway = gateway
        self.config = config or AgentConfig()
        self.run_id = run_id or f"{self.name}_{uuid.uuid4().hex[:8]}"
        self.trace = trace or RunTrace(
            run_id=self.run_id,
            user_id=getattr(context, "user_id", None),
        )
        if self.gateway.trace is None:
            self.gateway.trace = self.trace

        self.store = ResultStore()
        self.tools: ToolSet = self.build_tools()
        self.assembler: ResultAssembler = self.build_assembler()
        self.attempts: list[Attempt] = []

    # Hooks for concrete agents

    def build_tools(self) -> ToolSet:
        raise NotImplementedError

    def build_assembler(self) -> ResultAssembler:
        raise NotImplementedError

    def system_prompt(self) -> str:
        raise NotImplementedError

    def initial_instruction(self) -> str:
        raise NotImplementedError

    def build_retry_instruction(self, attempt: Attempt) -> str:
        raise NotImplementedError

    def blocking_policy(self, tool_name: str, tool_input: dict, store: ResultStore) -> Optional[BlockDecision]:
        return None

    # Run

    def run(self) -> RunOutcome:
        """
        Execute the run and return its outcome.

        Never raises for model or tool failures: gateway errors become a
        Failed outcome here.
        """
        id_prefix = f"[{self.run_id}] "
        logger.info(f"{id_prefix}Starting {self.name} run")
        self.trace.start(name=self.name, input={"instruction": self.initial_instruction()})

        supervisor = RetrySupervisor(
            run_attempt=self._attempt,
            build_retry_instruction=self.build_retry_instruction,
            min_completed_tools=self.min_completed_tools,
            enabled=self.config.retry_enabled,
            run_id=self.run_id,
        )
        try:
            outcome = supervisor.run(self.initial_instruction())
        except GatewayError as e:
            logger.error(f"{id_prefix}Model gateway error: {e}")
            outcome = Failed(reason=f"Model gateway error: {e}")

        logger.info(f"{id_prefix}{self.name} run finished: {outcome.status}")
        self.trace.end(
            output=outcome_to_dict(outcome),
            status="success" if isinstance(outcome, Success) else outcome.status,
        )
        return outcome

    def _attempt(self, instruction: str) -> Attempt:
        """One full loop run against an empty result store."""
        self.store.clear()
        tool_context = ToolContext(run_id=self.run_id, data=self.context, _store=self.store)
        coordinator = ToolCoordinator(
            tools=self.tools,
            store=self.store,
            context=tool_context,
            blocking_policy=self.blocking_policy,
            max_workers=self.config.max_parallel_workers,
            trace=self.trace,
            preview_chars=self.config.preview_chars,
        )
        loop = ConversationLoop(
            gateway=self.gateway,
            coordinator=coordinator,
            tools=self.tools,
            system_prompt=self.system_prompt(),
            max_iterations=self.config.max_iterations,
            run_id=self.run_id,
        )
        result = loop.run(instruction)
        snapshot = self.store.snapshot()
        outcome = self.assembler.assemble(snapshot, result.text)
        attempt = Attempt(outcome=outcome, final_text=result.text, snapshot=snapshot)
        self.attempts.append(attempt)
        return attempt
