"""
Compliance and Risk Analysis

Checks a supplier against a tender and analyzes tender risks from the
knowledge graph and the tender's documents.

Compliance Flow:
    1. Find entities matching the supplier name (vector search)
    2. Collect the supplier's certificates and licenses: matching entities
       of those types plus depth-1 HAS_CERT relations
    3. Find requirement chunks of the tender (keyword-seeded chunk search)
    4. Ask the model for a structured verdict (ComplianceCheckResult)
    5. Reconcile the verdict against the supplier's documents and its own
       requirement list

Model output is never trusted on its own. A met certificate or license
requirement that matches none of the supplier's documents becomes
"not_met", and a verdict is compliant only if the model says so, the score
reaches the pass score and no requirement is "not_met". Any failure
yields the conservative default (non-compliant, score 0) flagged as
degraded.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from tendergraph.errors import LanguageModelParseError
from tendergraph.query.context_builder import format_context_for_prompt
from tendergraph.types import (
    ComplianceCheckResult,
    EntityMatch,
    EntityType,
    GraphRAGContext,
    RelationType,
    RequirementCheck,
    RequirementStatus,
    RiskAnalysis,
    SearchScope,
    SupplierProfile,
    TenderProfile,
)
from tendergraph.utils.text import normalize_entity_name

if TYPE_CHECKING:
    from tendergraph.config import RAGConfig
    from tendergraph.graph.store import KnowledgeGraphStore
    from tendergraph.providers.base import EmbeddingProvider, LLMProvider
    from tendergraph.query.context_builder import ContextAssembler
    from tendergraph.storage.base import StorageBackend

logger = logging.getLogger(__name__)


CERTIFICATE_TYPES = frozenset({EntityType.CERTIFICATE.value, EntityType.LICENSE.value})

# Stems of normalized names that mark a requirement for a supplier document
DOCUMENT_MARKERS = (
    "сертификат",
    "лиценз",
    "декларац",
    "свидетельств",
    "certificat",
    "licen",
    "declaration",
)
SATISFIED_STATUSES = frozenset({RequirementStatus.MET.value, RequirementStatus.PARTIAL.value})
NO_SUPPORTING_DOCUMENT = "No matching certificate or license was found for the supplier."

COMPLIANCE_FALLBACK_RECOMMENDATION = "Compliance analysis failed. Please try again later."
NOT_FOUND = "not found"

RISK_CONTEXT_QUERY = "риски нарушения штрафы проблемы срыв сроки"
SUMMARY_CONTEXT_QUERY = "тендер закупка требования условия сроки цена"
SUMMARY_MAX_CHUNKS = 15
NO_TENDER_DOCUMENTS = "No processed documents were found for this tender."
SUMMARY_FALLBACK = "Could not create a tender summary."


COMPLIANCE_SYSTEM_PROMPT = """You are a procurement compliance analyst.
Compare a supplier's documents against tender requirements.

Respond with a single JSON object:
{{
  "isCompliant": true | false,
  "overallScore": 0-100,
  "requirements": [
    {{
      "requirement": "requirement text",
      "status": "met" | "not_met" | "partial" | "unknown",
      "details": "what was found",
      "relatedEntities": ["entity names"]
    }}
  ],
  "missingDocuments": ["document names"],
  "recommendations": ["recommendation"]
}}

Write all free text in {language}."""


COMPLIANCE_USER_PROMPT = """SUPPLIER:
Name: {name}
INN: {inn}

SUPPLIER CERTIFICATES AND LICENSES:
{certificates}

TENDER: {title}

TENDER REQUIREMENTS:
{requirements}"""


RISK_SYSTEM_PROMPT = """You are a procurement risk analyst.
Identify the potential risks of a tender from its documents, by category:
- Financial risks
- Schedule risks
- Legal risks
- Reputational risks
- Technical risks

Respond with a single JSON object:
{{
  "risks": [
    {{
      "type": "risk category",
      "severity": "low" | "medium" | "high" | "critical",
      "description": "risk description",
      "mitigation": "how to mitigate it"
    }}
  ],
  "overallRisk": "low" | "medium" | "high" | "critical"
}}

Write all free text in {language}."""


SUMMARY_SYSTEM_PROMPT = """Create a structured tender summary from the documents.

Include:
1. General information (subject of the purchase, customer)
2. Financial terms (initial maximum price, security)
3. Key dates and deadlines
4. Participant requirements
5. Product or service requirements
6. Important features and restrictions

Use bulleted lists. Answer in {language}."""


class ComplianceEngine:
    """
    Supplier compliance checks, risk analysis and tender summaries.

    Usage:
        engine = ComplianceEngine(storage, embeddings, graph, assembler, llm, config)
        verdict = await engine.check_compliance(owner_id, supplier, tender)
    """

    def __init__(
        self,
        storage: StorageBackend,
        embeddings: EmbeddingProvider,
        graph: KnowledgeGraphStore,
        assembler: ContextAssembler,
        llm: LLMProvider,
        config: RAGConfig,
    ) -> None:
        self.storage = storage
        self.embeddings = embeddings
        self.graph = graph
        self.assembler = assembler
        self.llm = llm
        self.config = config

    # -------------------------------------------------------------------------
    # Compliance
    # -------------------------------------------------------------------------

    async def check_compliance(
        self,
        owner_id: str,
        supplier: SupplierProfile,
        tender: TenderProfile,
    ) -> ComplianceCheckResult:
        """
        Check a supplier against a tender's requirements.

        Never raises for retrieval or model failures; returns the
        conservative default with degraded=True instead.
        """
        try:
            certificates, requirements = await asyncio.gather(
                self._supplier_certificates(owner_id, supplier),
                self._tender_requirements(owner_id, tender),
            )
            prompt = COMPLIANCE_USER_PROMPT.format(
                name=supplier.name,
                inn=supplier.inn or NOT_FOUND,
                certificates="\n".join(f"- {c}" for c in certificates) or NOT_FOUND,
                title=tender.title,
                requirements=requirements or NOT_FOUND,
            )
            verdict = await self.llm.generate_structured(
                prompt,
                ComplianceCheckResult,
                system=COMPLIANCE_SYSTEM_PROMPT.format(language=self.config.response_language),
            )
        except LanguageModelParseError as e:
            logger.warning(f"Compliance verdict could not be parsed: {e}")
            return self._conservative_default()
        except Exception as e:
            logger.warning(f"Compliance check failed: {e}")
            return self._conservative_default()

        return self._reconcile(verdict, certificates)

    async def _supplier_certificates(
        self, owner_id: str, supplier: SupplierProfile
    ) -> list[str]:
        """Certificate and license names linked to entities matching the supplier."""
        vector = await self.embeddings.embed(supplier.name)
        hits: list[EntityMatch] = await self.storage.search_entities(
            vector,
            owner_id,
            threshold=self.config.entity_search_threshold,
            limit=self.config.compliance_supplier_entity_limit,
        )

        names: list[str] = []
        for hit in hits:
            if hit.entity.entity_type in CERTIFICATE_TYPES:
                names.append(hit.entity.name)

        neighbourhoods = await asyncio.gather(
            *(
                self.graph.get_relations(hit.entity.id, owner_id, max_depth=1)
                for hit in hits
                if hit.entity.entity_type not in CERTIFICATE_TYPES
            )
        )
        for hops in neighbourhoods:
            for hop in hops:
                if hop.relation_type == RelationType.HAS_CERT.value and hop.to_type in CERTIFICATE_TYPES:
                    names.append(hop.to_name)

        return list(dict.fromkeys(names))

    async def _tender_requirements(self, owner_id: str, tender: TenderProfile) -> str:
        """Requirement text for a tender, truncated to the configured budget."""
        vector = await self.embeddings.embed(self.config.compliance_requirement_query)
        hits = await self.storage.search_chunks(
            vector,
            owner_id,
            scope=SearchScope(module=self.config.default_module, tender_id=tender.id),
            threshold=self.config.compliance_requirement_threshold,
            limit=self.config.compliance_requirement_chunk_limit,
        )
        parts = [req for req in tender.requirements if req.strip()]
        if tender.description:
            parts.insert(0, tender.description)
        parts.extend(hit.chunk.text_content for hit in hits)
        return "\n\n".join(parts)[: self.config.compliance_requirements_max_chars]

    def _reconcile(
        self, verdict: ComplianceCheckResult, certificates: list[str]
    ) -> ComplianceCheckResult:
        held = {normalize_entity_name(name) for name in certificates} - {""}
        checks = [self._check_documents(check, held) for check in verdict.requirements]

        not_met = [
            check.requirement
            for check in checks
            if check.status == RequirementStatus.NOT_MET.value
        ]
        missing = list(verdict.missing_documents)
        for requirement in not_met:
            if requirement not in missing:
                missing.append(requirement)

        compliant = (
            verdict.is_compliant
            and verdict.overall_score >= self.config.compliance_pass_score
            and not not_met
        )
        if verdict.is_compliant and not compliant:
            logger.info(
                f"Compliance verdict overridden: score {verdict.overall_score}, "
                f"{len(not_met)} requirements not met"
            )
        return verdict.model_copy(
            update={
                "is_compliant": compliant,
                "requirements": checks,
                "missing_documents": missing,
            }
        )

    def _check_documents(self, check: RequirementCheck, held: set[str]) -> RequirementCheck:
        """Downgrade a met document requirement the supplier holds nothing for."""
        if check.status not in SATISFIED_STATUSES:
            return check
        names = [normalize_entity_name(n) for n in [check.requirement, *check.related_entities]]
        if not any(marker in name for name in names for marker in DOCUMENT_MARKERS):
            return check
        if any(cert in name or name in cert for name in names if name for cert in held):
            return check
        logger.info(f"No supplier document backs requirement '{check.requirement}'")
        return check.model_copy(
            update={"status": RequirementStatus.NOT_MET.value, "details": NO_SUPPORTING_DOCUMENT}
        )

    def _conservative_default(self) -> ComplianceCheckResult:
        return ComplianceCheckResult(
            is_compliant=False,
            overall_score=0,
            recommendations=[COMPLIANCE_FALLBACK_RECOMMENDATION],
            degraded=True,
        )

    # -------------------------------------------------------------------------
    # Risks and summaries
    # -------------------------------------------------------------------------

    async def analyze_risks(self, owner_id: str, tender_id: str) -> RiskAnalysis:
        """
        Identify tender risks.

        With no tender context the model is not called and the result
        carries NO_TENDER_DOCUMENTS as its message. Failures yield no risks
        at "medium" overall, flagged as degraded.
        """
        try:
            context = await self.assembler.build(
                RISK_CONTEXT_QUERY, owner_id, scope=self._tender_scope(tender_id)
            )
            # Entity hits are not tender-scoped; without chunks there is no tender context
            if not context.chunks:
                return RiskAnalysis(message=NO_TENDER_DOCUMENTS)
            return await self.llm.generate_structured(
                f"CONTEXT:\n{self._render(context)}",
                RiskAnalysis,
                system=RISK_SYSTEM_PROMPT.format(language=self.config.response_language),
            )
        except Exception as e:
            logger.warning(f"Risk analysis failed: {e}")
            return RiskAnalysis(degraded=True)

    async def summarize_tender(self, owner_id: str, tender_id: str) -> str:
        """Structured summary of a tender built from its document context."""
        try:
            context = await self.assembler.build(
                SUMMARY_CONTEXT_QUERY,
                owner_id,
                scope=self._tender_scope(tender_id),
                max_chunks=SUMMARY_MAX_CHUNKS,
            )
        except Exception as e:
            logger.warning(f"Tender summary context failed: {e}")
            return SUMMARY_FALLBACK

        if not context.chunks:
            return NO_TENDER_DOCUMENTS

        try:
            summary = await self.llm.generate(
                f"CONTEXT:\n{self._render(context)}",
                system=SUMMARY_SYSTEM_PROMPT.format(language=self.config.response_language),
                temperature=0.3,
            )
        except Exception as e:
            logger.warning(f"Tender summary generation failed: {e}")
            return SUMMARY_FALLBACK
        return summary.strip() or SUMMARY_FALLBACK

    def _tender_scope(self, tender_id: str) -> SearchScope:
        return SearchScope(module=self.config.default_module, tender_id=tender_id)

    def _render(self, context: GraphRAGContext) -> str:
        return format_context_for_prompt(
            context, preview_chars=self.config.context_chunk_preview_chars
        )
