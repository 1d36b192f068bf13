"""Shared initialisation of the gateway's process-wide components.

``get_components`` builds the registry, retrieval service and orchestrator on
first use.  Initialisation runs under a lock, so concurrent first callers all
receive the same instance and the factory runs exactly once.
"""

from __future__ import annotations

import threading

from loguru import logger

from contracts.audit import AuditLogger
from contracts.manifest import DecisionPolicyKind, Manifest
from contracts.retrieval import Document, RetrievalBackend

from gateway.audit.logger import JsonlAuditLogger, NullAuditLogger
from gateway.completion import CompletionBackend, OllamaCompletionBackend, TemplateCompletionBackend
from gateway.decision import DecisionPolicy, KeywordHeuristicPolicy, ModelBackedPolicy
from gateway.manifest_loader import resolve_manifest
from gateway.model_adapters.ollama import OllamaAdapter
from gateway.orchestrator import CompletionOrchestrator
from gateway.retrieval.service import RetrievalContextService
from gateway.retrieval.static import NullRetrievalBackend, StaticRetrievalBackend
from gateway.tools.registry import ToolRegistry, create_default_registry


def _create_retrieval_backend(manifest: Manifest) -> RetrievalBackend:
    """Create a retrieval backend from manifest config."""
    config = manifest.retrieval
    if config.backend == "static":
        return StaticRetrievalBackend(
            [Document(**seed.model_dump()) for seed in config.documents]
        )
    if config.backend == "vector":
        from gateway.embedding_adapters.ollama import OllamaEmbeddingAdapter
        from gateway.retrieval.vector import VectorRetrievalBackend
        from gateway.vector_adapters.chroma import ChromaVectorAdapter

        return VectorRetrievalBackend(
            embedding=OllamaEmbeddingAdapter(
                base_url=manifest.models.base_url,
                model=config.embedding_model,
            ),
            store=ChromaVectorAdapter(persist_path=config.persist_path),
            collection=config.collection,
        )
    if config.backend == "none":
        return NullRetrievalBackend()
    raise ValueError(f"Unknown retrieval backend: {config.backend}")


def _create_decision_policy(manifest: Manifest, adapter: OllamaAdapter) -> DecisionPolicy:
    if manifest.decision.policy == DecisionPolicyKind.MODEL:
        return ModelBackedPolicy(adapter, default_model=manifest.models.default)
    return KeywordHeuristicPolicy()


def _create_completion_backend(manifest: Manifest, adapter: OllamaAdapter) -> CompletionBackend:
    if manifest.models.backend == "ollama":
        return OllamaCompletionBackend(adapter, default_model=manifest.models.default)
    if manifest.models.backend == "template":
        return TemplateCompletionBackend()
    raise ValueError(f"Unknown model backend: {manifest.models.backend}")


class GatewayComponents:
    """Container for initialised gateway components."""

    def __init__(
        self,
        manifest: Manifest,
        registry: ToolRegistry,
        retrieval: RetrievalContextService,
        orchestrator: CompletionOrchestrator,
        audit: AuditLogger,
    ) -> None:
        self.manifest = manifest
        self.registry = registry
        self.retrieval = retrieval
        self.orchestrator = orchestrator
        self.audit = audit


def init_gateway(manifest: Manifest | None = None, manifest_path: str | None = None) -> GatewayComponents:
    """Build every component from *manifest*.

    When no manifest object is given it is resolved from *manifest_path*,
    then ``GATEWAY_MANIFEST``, then ``./gateway.yaml``, then defaults.
    """
    if manifest is None:
        manifest = resolve_manifest(manifest_path)

    registry = create_default_registry(manifest)
    retrieval = RetrievalContextService(_create_retrieval_backend(manifest), manifest.retrieval)
    audit: AuditLogger = (
        JsonlAuditLogger(manifest.audit.path) if manifest.audit.enabled else NullAuditLogger()
    )

    adapter = OllamaAdapter(base_url=manifest.models.base_url)
    orchestrator = CompletionOrchestrator(
        registry=registry,
        retrieval=retrieval,
        policy=_create_decision_policy(manifest, adapter),
        backend=_create_completion_backend(manifest, adapter),
        audit=audit,
        app_name=manifest.app.name,
    )
    logger.info(
        f"Initialized gateway '{manifest.app.name}': {len(registry)} tools, "
        f"retrieval={retrieval.backend.name()}, decision={manifest.decision.policy.value}"
    )
    return GatewayComponents(
        manifest=manifest,
        registry=registry,
        retrieval=retrieval,
        orchestrator=orchestrator,
        audit=audit,
    )


# ── Process-wide instance ─────────────────────────────────────────────

_components: GatewayComponents | None = None
_init_lock = threading.Lock()


def get_components() -> GatewayComponents:
    """Return the process-wide components, initialising them exactly once."""
    global _components  # noqa: PLW0603
    with _init_lock:
        if _components is None:
            _components = init_gateway()
        return _components


def set_components(components: GatewayComponents | None) -> None:
    """Install (or with ``None``, discard) the process-wide components."""
    global _components  # noqa: PLW0603
    with _init_lock:
        _components = components
