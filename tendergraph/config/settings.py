"""
RAGConfig - Configuration Management

Sensible defaults with full override capability.

Example:
    >>> # Use defaults (reads from environment)
    >>> config = RAGConfig()

    >>> # Explicit configuration
    >>> config = RAGConfig(
    ...     llm_model="gpt-4o-mini",
    ...     chunk_max_size=1200,
    ... )

    >>> # From config file
    >>> config = RAGConfig.from_file("./tendergraph.toml")

Environment Variables:
    TENDERGRAPH_LLM_PROVIDER - LLM provider name
    TENDERGRAPH_LLM_MODEL - Model for extraction, QA and compliance
    TENDERGRAPH_LLM_BASE_URL - OpenAI-compatible endpoint (e.g. OpenRouter)
    TENDERGRAPH_VISION_MODEL - Multimodal model for image transcription
    TENDERGRAPH_EMBEDDING_MODEL - Embedding model name
    TENDERGRAPH_EMBEDDING_DIMENSIONS - Embedding vector length
    TENDERGRAPH_RESPONSE_LANGUAGE - Language for generated answers
    OPENAI_API_KEY - OpenAI API key (standard name)
    GOOGLE_API_KEY - Google API key
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, cast


def _load_toml(path: Path) -> dict[str, Any]:
    with open(path, "rb") as f:
        return cast(dict[str, Any], tomllib.load(f))


class RAGConfig:
    """Configuration for TenderGraph."""

    # === LLM Configuration ===

    llm_provider: str = "openai"
    """LLM provider: "openai" """

    llm_model: str = "gpt-4o"
    """Model for extraction, QA and compliance"""

    llm_model_fast: str = "gpt-4o-mini"
    """Model for quick operations (search insights)"""

    llm_base_url: str | None = None
    """Optional OpenAI-compatible base URL"""

    # === Vision Configuration ===

    vision_provider: str = "google"
    """Vision provider for image transcription: "google" """

    vision_model: str = "gemini-2.5-flash"
    """Multimodal model used to transcribe images"""

    vision_max_tokens: int = 4096
    """Upper bound on transcription output tokens"""

    # === Embedding Configuration ===

    embedding_provider: str = "openai"
    """Embedding provider: "openai" """

    embedding_model: str = "text-embedding-3-small"
    """Embedding model name"""

    embedding_dimensions: int = 1536
    """Embedding vector dimensions (deployment constant)"""

    embedding_batch_size: int = 100
    """Texts per embedding API call"""

    # === API Keys ===

    openai_api_key: str | None = None
    google_api_key: str | None = None

    # === Chunking Configuration ===

    chunk_max_size: int = 800
    """Maximum chunk length in characters"""

    chunk_min_size: int = 100
    """Minimum chunk length in characters (except a document's only chunk)"""

    chunk_overlap_size: int = 100
    """Characters shared between neighbouring chunks"""

    chunk_search_window: int = 200
    """How far back from a window's tail to look for a sentence boundary"""

    min_extracted_text_length: int = 10
    """Documents with less extracted text than this fail ingestion"""

    # === Extraction Configuration ===

    extraction_max_chars: int = 15000
    """Character budget per entity extraction call"""

    extraction_max_chunks: int = 10
    """Leading chunks of a document fed to entity extraction"""

    extraction_default_confidence: float = 0.8
    """Confidence assigned when the model omits one"""

    # === Search Configuration ===

    chunk_search_threshold: float = 0.7
    """Default minimum similarity for chunk search"""

    entity_search_threshold: float = 0.6
    """Default minimum similarity for entity search"""

    smart_search_threshold: float = 0.5
    """Minimum similarity for lower-precision smart search"""

    smart_search_limit: int = 10
    """Maximum hits returned by smart search"""

    # === Context Assembly Configuration ===

    default_module: str = "tenders"
    """Module scope applied to chunk search when none is given"""

    context_chunk_threshold: float = 0.6
    """Minimum similarity for chunks in Graph-RAG context"""

    context_max_chunks: int = 5
    """Maximum chunks in Graph-RAG context"""

    context_max_entities: int = 10
    """Maximum entities in Graph-RAG context"""

    context_expand_entities: int = 5
    """Top entities whose graph neighbourhood is expanded"""

    context_relation_depth: int = 1
    """Traversal depth for context expansion"""

    context_chunk_preview_chars: int = 500
    """Chunk text shown per document in the prompt"""

    relation_max_depth: int = 2
    """Default traversal depth for relation lookups"""

    # === Compliance Configuration ===

    compliance_supplier_entity_limit: int = 20
    """Supplier entities gathered by name search"""

    compliance_requirement_chunk_limit: int = 10
    """Tender requirement chunks gathered by keyword search"""

    compliance_requirement_query: str = "требования сертификаты лицензии документы"
    """Keyword seed used to find requirement chunks"""

    compliance_requirement_threshold: float = 0.6
    """Minimum similarity for requirement chunks"""

    compliance_requirements_max_chars: int = 10000
    """Character budget for requirement text in the compliance prompt"""

    compliance_pass_score: int = 70
    """Minimum overall score (0-100) for a compliant verdict"""

    # === Generation Configuration ===

    response_language: str = "Russian"
    """Language used for answers, summaries and recommendations"""

    summary_max_chars: int = 30000
    """Character budget for document summaries"""

    backfill_batch_size: int = 50
    """Rows embedded per backfill slice"""

    def __init__(self, **kwargs: Any) -> None:
        """
        Initialize configuration.

        Args:
            **kwargs: Override any configuration option
        """
        # Load from environment first
        self._load_from_env()

        # Apply explicit overrides
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration option: {key}")

    def _load_from_env(self) -> None:
        """Load configuration from environment variables."""
        import os

        # API keys (standard names)
        self.openai_api_key = os.getenv("OPENAI_API_KEY")
        self.google_api_key = os.getenv("GOOGLE_API_KEY")

        # TENDERGRAPH_* prefixed settings
        if provider := os.getenv("TENDERGRAPH_LLM_PROVIDER"):
            self.llm_provider = provider
        if model := os.getenv("TENDERGRAPH_LLM_MODEL"):
            self.llm_model = model
        if base_url := os.getenv("TENDERGRAPH_LLM_BASE_URL"):
            self.llm_base_url = base_url
        if model := os.getenv("TENDERGRAPH_VISION_MODEL"):
            self.vision_model = model
        if model := os.getenv("TENDERGRAPH_EMBEDDING_MODEL"):
            self.embedding_model = model
        if dimensions := os.getenv("TENDERGRAPH_EMBEDDING_DIMENSIONS"):
            self.embedding_dimensions = int(dimensions)
        if language := os.getenv("TENDERGRAPH_RESPONSE_LANGUAGE"):
            self.response_language = language

    @classmethod
    def from_file(cls, path: str | Path) -> "RAGConfig":
        """
        Load configuration from TOML file.

        Nested sections are flattened with the section prefix.

        Example TOML:
            [llm]
            model = "gpt-4o-mini"
            base_url = "https://openrouter.ai/api/v1"

            [chunk]
            max_size = 1200

            [api_keys]
            openai = "sk-..."

        Raises:
            FileNotFoundError: If config file doesn't exist
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        data = _load_toml(path)

        flat_config: dict[str, Any] = {}

        # Map section names to config key prefixes
        section_mapping = {
            "llm": "llm_",
            "vision": "vision_",
            "embedding": "embedding_",
            "api_keys": "",  # api_keys.openai -> openai_api_key
            "chunk": "chunk_",
            "extraction": "extraction_",
            "search": "",
            "context": "context_",
            "compliance": "compliance_",
            "generation": "",
        }

        for section, prefix in section_mapping.items():
            if section in data:
                for key, value in data[section].items():
                    if section == "api_keys":
                        flat_config[f"{key}_api_key"] = value
                    else:
                        flat_config[f"{prefix}{key}"] = value

        # Also support flat top-level keys
        for key, value in data.items():
            if key not in section_mapping and not isinstance(value, dict):
                flat_config[key] = value

        return cls(**flat_config)

    @classmethod
    def from_env(cls) -> "RAGConfig":
        """Load configuration from environment variables only."""
        return cls()

    def to_file(self, path: str | Path) -> None:
        """
        Save configuration to TOML file.

        API keys are excluded; set them via environment variables.
        """
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)

        sections: dict[str, dict[str, str | int | float | bool | None]] = {
            "llm": {
                "provider": self.llm_provider,
                "model": self.llm_model,
                "model_fast": self.llm_model_fast,
                "base_url": self.llm_base_url,
            },
            "vision": {
                "provider": self.vision_provider,
                "model": self.vision_model,
                "max_tokens": self.vision_max_tokens,
            },
            "embedding": {
                "provider": self.embedding_provider,
                "model": self.embedding_model,
                "dimensions": self.embedding_dimensions,
                "batch_size": self.embedding_batch_size,
            },
            "chunk": {
                "max_size": self.chunk_max_size,
                "min_size": self.chunk_min_size,
                "overlap_size": self.chunk_overlap_size,
                "search_window": self.chunk_search_window,
            },
            "extraction": {
                "max_chars": self.extraction_max_chars,
                "max_chunks": self.extraction_max_chunks,
                "default_confidence": self.extraction_default_confidence,
            },
            "search": {
                "chunk_search_threshold": self.chunk_search_threshold,
                "entity_search_threshold": self.entity_search_threshold,
                "smart_search_threshold": self.smart_search_threshold,
                "smart_search_limit": self.smart_search_limit,
            },
            "context": {
                "chunk_threshold": self.context_chunk_threshold,
                "max_chunks": self.context_max_chunks,
                "max_entities": self.context_max_entities,
                "expand_entities": self.context_expand_entities,
                "relation_depth": self.context_relation_depth,
                "chunk_preview_chars": self.context_chunk_preview_chars,
            },
            "compliance": {
                "supplier_entity_limit": self.compliance_supplier_entity_limit,
                "requirement_chunk_limit": self.compliance_requirement_chunk_limit,
                "requirement_query": self.compliance_requirement_query,
                "requirement_threshold": self.compliance_requirement_threshold,
                "requirements_max_chars": self.compliance_requirements_max_chars,
                "pass_score": self.compliance_pass_score,
            },
            "generation": {
                "response_language": self.response_language,
                "summary_max_chars": self.summary_max_chars,
                "backfill_batch_size": self.backfill_batch_size,
                "default_module": self.default_module,
                "min_extracted_text_length": self.min_extracted_text_length,
                "relation_max_depth": self.relation_max_depth,
            },
        }

        lines = ["# TenderGraph Configuration", ""]

        for section_name, section_values in sections.items():
            lines.append(f"[{section_name}]")
            for key, value in section_values.items():
                if isinstance(value, str):
                    lines.append(f'{key} = "{value}"')
                elif isinstance(value, bool):
                    lines.append(f"{key} = {str(value).lower()}")
                elif isinstance(value, (int, float)):
                    lines.append(f"{key} = {value}")
            lines.append("")

        lines.extend([
            "# API keys should be set via environment variables:",
            "# OPENAI_API_KEY, GOOGLE_API_KEY",
            "",
        ])

        path.write_text("\n".join(lines), encoding="utf-8")

    def with_overrides(self, **kwargs: Any) -> "RAGConfig":
        """Return new config with specified overrides."""
        new_config = RAGConfig.__new__(RAGConfig)
        for key in dir(self):
            if not key.startswith("_") and not callable(getattr(self, key)):
                setattr(new_config, key, getattr(self, key))
        for key, value in kwargs.items():
            if not hasattr(new_config, key):
                raise ValueError(f"Unknown configuration option: {key}")
            setattr(new_config, key, value)
        return new_config
