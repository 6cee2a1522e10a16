"""Precise span replacement proposals.

The engine never writes files. ``PatchEngine.propose_replace`` computes the
new content for a unique span and returns a ``PatchProposal``; a
``DiffReviewer`` collaborator shows it to the user, and only an explicit
``ProposalStore.apply`` call materializes it on disk.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Protocol, runtime_checkable
from uuid import uuid4

from pydantic import Field

from toolgate.errors import (
    AmbiguousSpanError,
    ProposalNotFoundError,
    SpanNotFoundError,
    StaleProposalError,
)
from toolgate.schemas.base import BaseSchema

from .path_guard import resolve_safe

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ProposalState(str, Enum):
    pending = "pending"
    applied = "applied"
    discarded = "discarded"


class PatchProposal(BaseSchema):
    id: str = Field(default_factory=lambda: uuid4().hex)
    path: str = Field(..., description="Workspace-relative path as requested.")
    absolute_path: str = Field(..., description="Resolved path under the workspace root.")
    offset: int = Field(..., ge=0, description="Character offset of the replaced span.")
    old_span: str
    new_span: str
    original_content: str = Field(..., description="File content the proposal was computed from.")
    new_content: str
    instruction: Optional[str] = Field(None, description="Short description of the edit.")
    state: ProposalState = ProposalState.pending
    created_at: datetime = Field(default_factory=_utc_now)


@runtime_checkable
class DiffReviewer(Protocol):
    """Collaborator that presents a proposal (typically as a diff) to the user."""

    async def review(self, proposal: PatchProposal) -> None: ...


class PatchEngine:
    """Compute unique-span replacements for files under a workspace root."""

    def __init__(self, workspace_root: Path, *, encoding: str = "utf-8") -> None:
        self._root = Path(workspace_root)
        self._encoding = encoding

    def propose_replace(
        self,
        path: str,
        old_span: str,
        new_span: str,
        *,
        instruction: Optional[str] = None,
    ) -> PatchProposal:
        """
        Build a replace proposal for the single occurrence of ``old_span``.

        Args:
            path: Workspace-relative file path.
            old_span: Exact text to replace; must occur exactly once.
            new_span: Replacement text.
            instruction: Optional description carried on the proposal.

        Returns:
            A pending ``PatchProposal`` whose ``new_content`` is
            ``prefix + new_span + suffix``.

        Raises:
            PathOutOfBoundsError: If ``path`` escapes the workspace.
            ValueError: If ``old_span`` is empty.
            FileNotFoundError: If the file does not exist.
            SpanNotFoundError: If ``old_span`` does not occur.
            AmbiguousSpanError: If ``old_span`` occurs more than once.
        """
        if not old_span:
            raise ValueError("old_span must not be empty")
        target = resolve_safe(self._root, path)
        content = target.read_text(encoding=self._encoding)

        first = content.find(old_span)
        if first == -1:
            raise SpanNotFoundError(path)
        last = content.rfind(old_span)
        if first != last:
            raise AmbiguousSpanError(path, first, last)

        new_content = content[:first] + new_span + content[first + len(old_span):]
        logger.debug("PatchEngine.propose_replace: path=%s offset=%d old=%d new=%d", path, first, len(old_span), len(new_span))
        return PatchProposal(
            path=path,
            absolute_path=str(target),
            offset=first,
            old_span=old_span,
            new_span=new_span,
            original_content=content,
            new_content=new_content,
            instruction=instruction,
        )


class ProposalStore:
    """
    In-memory holder of pending proposals.

    Notes:
        - ``apply`` re-reads the file and refuses if it no longer matches the
          content the proposal was computed from.
        - Applied and discarded proposals are removed from the store.
    """

    def __init__(self, *, encoding: str = "utf-8") -> None:
        self._pending: Dict[str, PatchProposal] = {}
        self._lock = threading.Lock()
        self._encoding = encoding

    def add(self, proposal: PatchProposal) -> PatchProposal:
        with self._lock:
            self._pending[proposal.id] = proposal
        return proposal

    def get(self, proposal_id: str) -> PatchProposal:
        with self._lock:
            proposal = self._pending.get(proposal_id)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        return proposal

    def pending(self) -> List[PatchProposal]:
        with self._lock:
            return list(self._pending.values())

    def _pop(self, proposal_id: str) -> PatchProposal:
        with self._lock:
            proposal = self._pending.pop(proposal_id, None)
        if proposal is None:
            raise ProposalNotFoundError(proposal_id)
        return proposal

    def apply(self, proposal_id: str) -> PatchProposal:
        """
        Write a pending proposal to disk.

        Raises:
            ProposalNotFoundError: If the id is unknown or already resolved.
            StaleProposalError: If the file changed since the proposal; the
                proposal is dropped.
            OSError: If the file cannot be read or written; the proposal
                stays pending.
        """
        with self._lock:
            proposal = self._pending.get(proposal_id)
            if proposal is None:
                raise ProposalNotFoundError(proposal_id)
            target = Path(proposal.absolute_path)
            current = target.read_text(encoding=self._encoding) if target.exists() else None
            if current != proposal.original_content:
                del self._pending[proposal_id]
                logger.warning("Refusing stale proposal %s for %s", proposal.id, proposal.path)
                raise StaleProposalError(proposal.path)
            target.write_text(proposal.new_content, encoding=self._encoding)
            del self._pending[proposal_id]
        logger.info(f"Applied proposal {proposal.id} to {proposal.path}")
        return proposal.model_copy(update={"state": ProposalState.applied})

    def discard(self, proposal_id: str) -> PatchProposal:
        proposal = self._pop(proposal_id)
        logger.info(f"Discarded proposal {proposal.id} for {proposal.path}")
        return proposal.model_copy(update={"state": ProposalState.discarded})
