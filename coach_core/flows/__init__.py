"""Tool-calling orchestration built on LangGraph."""

from coach_core.flows.orchestrator import ToolCallOrchestrator

__all__ = ["ToolCallOrchestrator"]
