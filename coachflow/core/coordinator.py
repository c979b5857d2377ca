"""
Tool execution coordinator.

Executes the tool invocations of one assistant turn:

- invocations are grouped by tool name, keeping request order inside a group;
- a group of two or more invocations of a parallelizable tool runs on a
  thread pool and completes only once every member has settled;
- every other invocation runs sequentially, after consulting the blocking
  policy against the result store;
- every result, including blocked ones, is stored under the tool's storage
  key before being wrapped into a result block.

Result blocks are returned in the order the model requested them.
"""

import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Optional

from ..tracing import RunTrace
from .store import ResultStore
from .tools import Tool, ToolContext, ToolOutput, ToolSet
from .types import ResultStatus, ToolResultBlock, ToolUseBlock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BlockDecision:
    """Returned by a blocking policy to stop a tool from executing."""

    reason: str
    blocking_flags: tuple[str, ...] = ()

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {"error": self.reason, "blocked": True}
        if self.blocking_flags:
            payload["blocking_flags"] = list(self.blocking_flags)
        return payload


BlockingPolicy = Callable[[str, dict, ResultStore], Optional[BlockDecision]]


def no_blocking(tool_name: str, tool_input: dict, store: ResultStore) -> Optional[BlockDecision]:
    return None


def preview(value: Any, limit: int = 200) -> str:
    """Short single-line rendering of a result for logs."""
    try:
        text = value if isinstance(value, str) else json.dumps(value, default=str)
    except (TypeError, ValueError):
        text = repr(value)
    return text if len(text) <= limit else text[:limit] + "..."


def group_by_tool(tool_uses: list[ToolUseBlock]) -> dict[str, list[ToolUseBlock]]:
    """Group invocations by tool name, in order of first appearance."""
    groups: dict[str, list[ToolUseBlock]] = {}
    for use in tool_uses:
        groups.setdefault(use.name, []).append(use)
    return groups


class ToolCoordinator:
    """Runs tool invocations for one run, enforcing blocking deterministically."""

    def __init__(
        self,
        tools: ToolSet,
        store: ResultStore,
        context: ToolContext,
        blocking_policy: BlockingPolicy = no_blocking,
        max_workers: int = 4,
        trace: Optional[RunTrace] = None,
        preview_chars: int = 200,
    ):
        self.tools = tools
        self.store = store
        self.context = context
        self.blocking_policy = blocking_policy
        self.max_workers = max(1, max_workers)
        self.trace = trace
        self.preview_chars = preview_chars

    @property
    def _prefix(self) -> str:
        return f"[{self.context.run_id}] " if self.context.run_id else ""

    def execute(self, tool_uses: list[ToolUseBlock]) -> list[ToolResultBlock]:
        """
        Execute one turn's invocations and return their result blocks.

        Never raises for tool failures: unknown tools, blocked tools and tools
        that raise all produce error results.
        """
        by_id: dict[str, ToolResultBlock] = {}
        groups = group_by_tool(tool_uses)
        logger.info(f"{self._prefix}Executing {len(tool_uses)} tool call(s) across {len(groups)} group(s)")

        for name, group in groups.items():
            tool = self.tools.get(name)
            if tool is not None and tool.parallelizable and len(group) > 1:
                by_id.update(self._execute_parallel(tool, group))
            else:
                for use in group:
                    by_id[use.id] = self._execute_one(use)

        return [by_id[use.id] for use in tool_uses]

    def _execute_parallel(self, tool: Tool, group: list[ToolUseBlock]) -> dict[str, ToolResultBlock]:
        logger.info(f"{self._prefix}Running {len(group)} {tool.name} calls in parallel")
        results: dict[str, ToolResultBlock] = {}
        runnable: list[ToolUseBlock] = []
        for use in group:
            blocked = self._check_blocking(tool, use)
            if blocked is not None:
                results[use.id] = blocked
            else:
                runnable.append(use)

        workers = min(len(runnable), self.max_workers) or 1
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._run_tool, tool, use): use for use in runnable}
            for future in as_completed(futures):
                use = futures[future]
                results[use.id] = future.result()

        return results

    def _execute_one(self, use: ToolUseBlock) -> ToolResultBlock:
        tool = self.tools.get(use.name)
        if tool is None:
            logger.warning(f"{self._prefix}Tool not found: {use.name}")
            return ToolResultBlock(
                tool_use_id=use.id,
                status=ResultStatus.ERROR,
                content={"error": f"Tool '{use.name}' not found"},
            )

        blocked = self._check_blocking(tool, use)
        if blocked is not None:
            return blocked
        return self._run_tool(tool, use)

    def _check_blocking(self, tool: Tool, use: ToolUseBlock) -> Optional[ToolResultBlock]:
        decision = self.blocking_policy(tool.name, use.input, self.store)
        if decision is None:
            return None

        key = tool.storage_key(use.input, use.id)
        logger.warning(
            f"{self._prefix}tool={tool.name} phase=blocked key={key} use_id={use.id} "
            f"reason={decision.reason}"
        )
        payload = decision.to_payload()
        self.store.put(key, tool.name, use.id, ResultStatus.ERROR, payload)
        return ToolResultBlock(tool_use_id=use.id, status=ResultStatus.ERROR, content=payload)

    def _run_tool(self, tool: Tool, use: ToolUseBlock) -> ToolResultBlock:
        """Execute a tool, store its result and wrap it. Never raises."""
        key = tool.storage_key(use.input, use.id)
        logger.info(f"{self._prefix}tool={tool.name} phase=start key={key} use_id={use.id}")
        started = time.monotonic()

        if self.trace is not None:
            with self.trace.span(name=f"tool_{tool.name}", input=use.input, metadata={"key": key}) as span:
                block = self._invoke(tool, use, key, started)
                span.set_status(block.status.value)
                span.set_output({"result": preview(block.content, self.preview_chars)})
                return block
        return self._invoke(tool, use, key, started)

    def _invoke(self, tool: Tool, use: ToolUseBlock, key: str, started: float) -> ToolResultBlock:
        try:
            raw = tool.execute(use.input, self.context)
        except Exception as e:
            duration_ms = (time.monotonic() - started) * 1000
            message = str(e)[:500] or type(e).__name__
            logger.error(
                f"{self._prefix}tool={tool.name} phase=error key={key} use_id={use.id} "
                f"duration_ms={duration_ms:.0f} error={message}"
            )
            payload = {"error": message}
            self.store.put(key, tool.name, use.id, ResultStatus.ERROR, payload)
            return ToolResultBlock(tool_use_id=use.id, status=ResultStatus.ERROR, content=payload)

        updates: dict[str, Any] = {}
        if isinstance(raw, ToolOutput):
            updates = raw.store_updates
            raw = raw.result

        self.store.put(key, tool.name, use.id, ResultStatus.SUCCESS, raw)
        for update_key, value in updates.items():
            if update_key in self.store:
                self.store.replace(update_key, value)
            else:
                logger.warning(f"{self._prefix}tool={tool.name} ignored update for unknown key={update_key}")

        duration_ms = (time.monotonic() - started) * 1000
        logger.info(
            f"{self._prefix}tool={tool.name} phase=success key={key} use_id={use.id} "
            f"duration_ms={duration_ms:.0f} preview={preview(raw, self.preview_chars)}"
        )
        return ToolResultBlock(tool_use_id=use.id, status=ResultStatus.SUCCESS, content=raw)
