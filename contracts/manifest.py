"""Gateway manifest (gateway.yaml) schema — Pydantic models.

Every section has defaults, so an empty manifest is a valid configuration.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


# ── App + runtime ───────────────────────────────────────────────────


class AppInfo(BaseModel):
    name: str = "completion-gateway"
    version: str = "0.1.0"


class RuntimeConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8080
    settle_delay: float = 0.5       # seconds before the first health probe
    health_attempts: int = 5
    health_interval: float = 0.2    # seconds between health probes
    health_timeout: float = 2.0     # per-probe HTTP timeout
    health_path: str = "/ai/health"


# ── Models + decision policy ────────────────────────────────────────


class ModelsConfig(BaseModel):
    backend: str = "template"       # "template" | "ollama"
    default: str = ""
    base_url: str = "http://localhost:11434"


class DecisionPolicyKind(str, Enum):
    KEYWORD = "keyword"
    MODEL = "model"


class DecisionConfig(BaseModel):
    policy: DecisionPolicyKind = DecisionPolicyKind.KEYWORD


# ── Retrieval ────────────────────────────────────────────────────────


class SeedDocument(BaseModel):
    id: str
    title: str
    content: str
    metadata: dict[str, Any] = {}


class RetrievalConfig(BaseModel):
    backend: str = "static"         # "static" | "vector" | "none"
    max_documents: int = Field(default=5, ge=1)
    relevance_threshold: float = Field(default=0.70, ge=0.0, le=1.0)
    max_context_tokens: int = Field(default=4000, ge=0)
    embedding_model: str = "nomic-embed-text"
    collection: str = "documents"
    persist_path: str = ".gateway/vector_db"
    documents: list[SeedDocument] = []


# ── Built-in tool groups ─────────────────────────────────────────────


class FilesystemToolConfig(BaseModel):
    allow_read: list[str] = []
    allow_write: list[str] = []
    max_bytes: int = 65536


class ToolsConfig(BaseModel):
    filesystem: FilesystemToolConfig = FilesystemToolConfig()
    web_search: bool = True


# ── Audit ────────────────────────────────────────────────────────────


class AuditConfig(BaseModel):
    enabled: bool = True
    path: str = ".gateway/audit.jsonl"


# ── Root manifest ────────────────────────────────────────────────────


class Manifest(BaseModel):
    app: AppInfo = AppInfo()
    runtime: RuntimeConfig = RuntimeConfig()
    models: ModelsConfig = ModelsConfig()
    decision: DecisionConfig = DecisionConfig()
    retrieval: RetrievalConfig = RetrievalConfig()
    tools: ToolsConfig = ToolsConfig()
    audit: AuditConfig = AuditConfig()
