"""Runs planned compiler invocations until one succeeds."""
from __future__ import annotations

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Sequence

from application.ports.command_runner import CommandRunner
from core.logging_config import get_logger
from domain.generation import ExecutionOutcome, InvocationStrategy

logger = get_logger(__name__)


@dataclass(frozen=True)
class ExecutionEnvironment:
    compiler: Path
    env: Mapping[str, str] = field(default_factory=dict)


class GenerationExecutor:
    """Sequential strategy runner.

    Strategies share one output directory, so they never overlap: strategy k+1
    starts only after strategy k has finished and failed.
    """

    def __init__(self, runner: CommandRunner, timeout: Optional[float] = 30.0):
        self._runner = runner
        self._timeout = timeout

    async def execute(
        self,
        strategies: Sequence[InvocationStrategy],
        environment: ExecutionEnvironment,
    ) -> tuple[list[ExecutionOutcome], Optional[ExecutionOutcome]]:
        """Returns every attempted outcome and the final one (None if nothing ran)."""
        outcomes: list[ExecutionOutcome] = []
        for strategy in strategies:
            outcome = await self._run(strategy, environment)
            outcomes.append(outcome)
            if outcome.succeeded:
                logger.info("generation_strategy_succeeded", label=strategy.label, attempt=len(outcomes))
                break
            logger.warning(
                "generation_strategy_failed",
                label=strategy.label,
                attempt=len(outcomes),
                error=outcome.error,
                timed_out=outcome.timed_out,
                output=outcome.combined_output,
            )
        return outcomes, (outcomes[-1] if outcomes else None)

    async def execute_gateway(
        self,
        strategy: InvocationStrategy,
        environment: ExecutionEnvironment,
    ) -> ExecutionOutcome:
        outcome = await self._run(strategy, environment)
        logger.info("gateway_generation_done", succeeded=outcome.succeeded, error=outcome.error)
        return outcome

    async def _run(self, strategy: InvocationStrategy, environment: ExecutionEnvironment) -> ExecutionOutcome:
        command = strategy.command(environment.compiler)
        command_line = strategy.command_line(environment.compiler)
        logger.info("generation_strategy_started", label=strategy.label, command=command_line)

        start = time.perf_counter()
        result = await self._runner.run(
            command,
            cwd=strategy.working_directory,
            env=environment.env,
            timeout=self._timeout,
        )
        elapsed_ms = (time.perf_counter() - start) * 1000

        return ExecutionOutcome(
            strategy=strategy,
            succeeded=result.ok,
            combined_output=result.output,
            error=None if result.ok else (result.error or f"exit status {result.return_code}"),
            return_code=result.return_code,
            command_line=command_line,
            elapsed_ms=elapsed_ms,
            timed_out=result.timed_out,
        )
