"""Command gate: blocklist plus mandatory human confirmation.

Two checks run before any shell command executes:

1. ``check_blocklist`` rejects a small fixed set of catastrophic patterns
   immediately, without prompting anyone. It is a fast deterrent only; a
   substring list can always be bypassed by rephrasing the command.
2. ``request_approval`` obtains an explicit decision from the
   human-interaction collaborator. This is the real security boundary: only
   the exact ``ConfirmationToken.approve`` value lets an action run.

Provider tool calls and file writes reuse ``request_approval`` with a
different ``ActionKind``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, runtime_checkable

from toolgate.schemas.domain import (
    ActionKind,
    ActionState,
    ConfirmationRequest,
    ConfirmationToken,
)

logger = logging.getLogger(__name__)

BLOCKED_COMMAND_PATTERNS: tuple[str, ...] = (
    "rm -rf /",
    "sudo ",
    ":(){ :|:& };:",
)


@runtime_checkable
class ConfirmationProvider(Protocol):
    """Human-interaction collaborator asked to approve or deny one action.

    Implementations return a token string; anything other than
    ``ConfirmationToken.approve`` (``"ACPT"``) is a denial, including ``None``.
    """

    async def confirm(self, request: ConfirmationRequest) -> Optional[str]: ...


@dataclass(frozen=True)
class GateDecision:
    """
    Outcome of the gate for a single pending action.

    Attributes:
        state: ``pending_confirmation`` is never returned; an approved action
            is reported as ``running`` (it may proceed), otherwise ``rejected``
            or ``denied``.
        reason: Human-readable reason for a refusal.
        matched_pattern: The blocklist entry that matched, if any.
    """

    state: ActionState
    reason: Optional[str] = None
    matched_pattern: Optional[str] = None

    @property
    def approved(self) -> bool:
        return self.state == ActionState.running


class CommandGate:
    """Blocklist and confirmation checks shared by every side-effecting action.

    Confirmation prompts are serialized: while one decision is pending, other
    requests wait for the lock instead of stacking prompts on the user.
    """

    def __init__(
        self,
        confirmer: ConfirmationProvider,
        *,
        timeout_seconds: Optional[float] = None,
        blocked_patterns: Sequence[str] = BLOCKED_COMMAND_PATTERNS,
    ) -> None:
        self._confirmer = confirmer
        self._timeout = timeout_seconds
        self._blocked = tuple(blocked_patterns)
        self._prompt_lock = asyncio.Lock()

    @property
    def timeout_seconds(self) -> Optional[float]:
        return self._timeout

    @property
    def blocked_patterns(self) -> tuple[str, ...]:
        return self._blocked

    def check_blocklist(self, command: str) -> Optional[str]:
        """Return the first blocklisted pattern found in ``command``, if any."""
        for pattern in self._blocked:
            if pattern in command:
                return pattern
        return None

    async def request_approval(self, request: ConfirmationRequest) -> GateDecision:
        """
        Ask the human collaborator for a decision and wait for it.

        A timeout, a collaborator error, or any token other than the exact
        approve token is a denial.

        Args:
            request: What is being asked and why.

        Returns:
            GateDecision in state ``running`` when approved, otherwise ``denied``.
        """
        logger.debug("CommandGate.request_approval: kind=%s title=%s", request.kind.value, request.title)
        async with self._prompt_lock:
            try:
                if self._timeout is None:
                    token = await self._confirmer.confirm(request)
                else:
                    token = await asyncio.wait_for(self._confirmer.confirm(request), timeout=self._timeout)
            except asyncio.TimeoutError:
                logger.warning("Confirmation timed out after %ss: %s", self._timeout, request.title)
                return GateDecision(state=ActionState.denied, reason=f"confirmation timed out after {self._timeout}s")
            except Exception as e:
                logger.error("Confirmation collaborator failed: %s", e)
                return GateDecision(state=ActionState.denied, reason=f"confirmation failed: {e}")

        if token == ConfirmationToken.approve.value:
            logger.info("Approved %s: %s", request.kind.value, request.title)
            return GateDecision(state=ActionState.running)
        logger.info("Denied %s: %s (token=%r)", request.kind.value, request.title, token)
        return GateDecision(state=ActionState.denied, reason="denied by user")

    async def review_command(self, command: str) -> GateDecision:
        """
        Run both checks for a shell command.

        Args:
            command: The full shell command line.

        Returns:
            ``rejected`` on a blocklist match (no prompt is shown), otherwise
            the result of ``request_approval``.
        """
        matched = self.check_blocklist(command)
        if matched is not None:
            logger.warning("Blocked command %r (matched %r)", command, matched)
            return GateDecision(
                state=ActionState.rejected,
                reason=f"command matches blocked pattern '{matched}'",
                matched_pattern=matched,
            )
        return await self.request_approval(
            ConfirmationRequest(kind=ActionKind.shell_command, title=f"Run command: {command}", detail=command)
        )
