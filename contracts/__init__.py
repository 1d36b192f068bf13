"""Shared contracts — source of truth for all gateway interfaces."""

from contracts.api import (
    ChatRequest,
    ChatResponse,
    Choice,
    FinishReason,
    Message,
    Role,
    ToolCall,
    ToolCallFunction,
    ToolSpec,
    Usage,
)
from contracts.manifest import Manifest, RetrievalConfig, RuntimeConfig, ToolsConfig, AuditConfig
from contracts.tool_sdk import GroupStatus, ProviderGroup, ToolExecutor, ToolProvider
from contracts.retrieval import Document, RetrievalBackend, RetrievalContext
from contracts.audit import AuditEntry, AuditEvent, AuditLogger

__all__ = [
    # api
    "ChatRequest",
    "ChatResponse",
    "Choice",
    "FinishReason",
    "Message",
    "Role",
    "ToolCall",
    "ToolCallFunction",
    "ToolSpec",
    "Usage",
    # manifest
    "Manifest",
    "RetrievalConfig",
    "RuntimeConfig",
    "ToolsConfig",
    "AuditConfig",
    # tool sdk
    "GroupStatus",
    "ProviderGroup",
    "ToolExecutor",
    "ToolProvider",
    # retrieval
    "Document",
    "RetrievalBackend",
    "RetrievalContext",
    # audit
    "AuditEntry",
    "AuditEvent",
    "AuditLogger",
]
