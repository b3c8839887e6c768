"""Fast path for known failure reasons, hand-off to the agent for the rest."""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, Mapping, Protocol

from structlog.stdlib import BoundLogger

from .core.errors import ApplicationError, DelegationError, StrategyError
from .core.logging import get_logger
from .models import FailureEvent
from .strategies.base import FailureStrategy

DETERMINISTIC_PATH = "deterministic"


class AgentDelegate(Protocol):
    """Anything that can take over an event the router cannot handle."""

    async def handle(self, event: FailureEvent) -> dict[str, Any]:
        ...


class DeterministicRouter:
    """Route failure events by ``reason``.

    ``strategies`` is copied at construction, so later changes to the caller's
    mapping do not affect routing. A missing ``reason`` is treated as the empty
    string and therefore always goes to the agent.

    The agent hand-off is bounded by ``agent_timeout_ms``. On timeout the caller
    gets a :class:`DelegationError`; the agent run itself is shielded and keeps
    going in the background until it completes or fails. The same holds when the
    caller itself is cancelled. Hand-offs are logged under ``agent_address``.
    """

    DEFAULT_AGENT_TIMEOUT_MS = 10_000
    DEFAULT_AGENT_ADDRESS = "agent.required"

    def __init__(
        self,
        strategies: Mapping[str, FailureStrategy],
        agent: AgentDelegate,
        *,
        agent_timeout_ms: int = DEFAULT_AGENT_TIMEOUT_MS,
        agent_address: str = DEFAULT_AGENT_ADDRESS,
        logger: BoundLogger | None = None,
    ) -> None:
        if agent_timeout_ms <= 0:
            raise ValueError("agent_timeout_ms must be positive")
        self._strategies: Mapping[str, FailureStrategy] = MappingProxyType(dict(strategies))
        self._agent = agent
        self._agent_timeout_ms = agent_timeout_ms
        self._agent_address = agent_address
        self._background: set[asyncio.Task[dict[str, Any]]] = set()
        self._logger = (logger or get_logger(__name__)).bind(component="DeterministicRouter")
        self._logger.info("router.ready", reasons=sorted(self._strategies))

    @property
    def reasons(self) -> list[str]:
        return sorted(self._strategies)

    @property
    def agent_address(self) -> str:
        return self._agent_address

    async def submit(self, event: FailureEvent) -> dict[str, Any]:
        """Handle ``event`` and return the reply for the original caller."""

        view: Mapping[str, Any] = MappingProxyType(dict(event))
        reason = str(view.get("reason") or "")

        strategy = self._strategies.get(reason)
        if strategy is None:
            self._logger.info("router.delegate", reason=reason, address=self._agent_address)
            return await self._delegate(view)

        self._logger.info("router.deterministic", reason=reason)
        try:
            result_event = await strategy.handle(view)
        except Exception as exc:
            self._logger.exception("router.strategy.error", reason=reason)
            raise StrategyError(
                str(exc) or f"Strategy for reason '{reason}' failed",
                details={"reason": reason},
            ) from exc

        return {"status": "ok", "path": DETERMINISTIC_PATH, "resultEvent": result_event}

    async def _delegate(self, event: Mapping[str, Any]) -> dict[str, Any]:
        task = asyncio.ensure_future(self._agent.handle(event))
        timeout = self._agent_timeout_ms / 1000
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError as exc:
            self._logger.warning("router.delegate.timeout", timeout_ms=self._agent_timeout_ms)
            raise DelegationError(
                f"Agent hand-off timed out after {self._agent_timeout_ms} ms",
                details={"timeout_ms": self._agent_timeout_ms},
            ) from exc
        except asyncio.CancelledError:
            self._logger.warning("router.delegate.caller_cancelled")
            raise
        except ApplicationError:
            raise
        except Exception as exc:
            self._logger.exception("router.delegate.error")
            raise DelegationError(str(exc) or "Agent hand-off failed") from exc
        finally:
            # the run outlives the caller on timeout or cancellation
            if not task.done():
                self._background.add(task)
                task.add_done_callback(self._on_late_completion)

    def _on_late_completion(self, task: asyncio.Task[dict[str, Any]]) -> None:
        self._background.discard(task)
        if task.cancelled():
            self._logger.warning("router.delegate.late_cancelled")
            return
        error = task.exception()
        if error is not None:
            self._logger.warning("router.delegate.late_failure", error=str(error))
            return
        self._logger.info("router.delegate.late_completion", status=task.result().get("status"))


__all__ = ["AgentDelegate", "DETERMINISTIC_PATH", "DeterministicRouter"]
