"""State definition for the tool-calling graph."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional, TypedDict

from coach_core.domain.models import ToolInvocation
from coach_core.providers.gateway import ChatSession
from coach_core.tools.definitions import ActionOutcome, ToolManifest

Phase = Literal[
    "awaiting_initial",
    "tool_requested",
    "executing_action",
    "awaiting_followup",
    "final",
]


class ToolCallState(TypedDict, total=False):
    """State shared across the orchestrator's LangGraph nodes."""

    user_message: str
    manifest: ToolManifest
    uid: Optional[str]
    session: Optional[ChatSession]
    phase: Phase
    invocation: Optional[ToolInvocation]
    outcome: Optional[ActionOutcome]
    final_text: Optional[str]
    log_ctx: Dict[str, Any]
