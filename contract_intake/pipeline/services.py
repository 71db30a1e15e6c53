import logging
from dataclasses import dataclass
from typing import Optional

from contract_intake.agents.ai_extractor import AIExtractor
from contract_intake.agents.rule_based_extractor import RuleBasedExtractor
from contract_intake.agents.text_extraction_agent import TextExtractionAgent
from contract_intake.core.config import Settings
from contract_intake.core.errors import ConfigError
from contract_intake.core.llm import CompletionService, build_completion_service
from contract_intake.database.contract_registry import ContractRegistry
from contract_intake.database.document_store import LocalDocumentStore
from contract_intake.database.record_store import AnalysisRecordStore, build_record_store
from contract_intake.pipeline.orchestrator import ExtractionOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class IntakeServices:
    """Collaborators shared by the API routers, built once per application."""
    settings: Settings
    document_store: LocalDocumentStore
    record_store: AnalysisRecordStore
    contract_registry: ContractRegistry
    orchestrator: ExtractionOrchestrator

    async def start(self) -> None:
        await self.orchestrator.recover()
        await self.orchestrator.queue.start()

    async def stop(self) -> None:
        await self.orchestrator.queue.stop()


def build_services(
    settings: Settings,
    completion_service: Optional[CompletionService] = None,
    record_store: Optional[AnalysisRecordStore] = None,
) -> IntakeServices:
    """Wire the intake pipeline from settings.

    Args:
        settings: Application settings
        completion_service: Overrides the Groq-backed service built from settings
        record_store: Overrides the record store named in settings

    Returns:
        Ready-to-start services container
    """
    try:
        if record_store is None:
            record_store = build_record_store(settings.RECORD_STORE, settings.ANALYSES_DIR)
        document_store = LocalDocumentStore(settings.CONTRACTS_DIR)
        contract_registry = ContractRegistry(settings.CONTRACT_REGISTRY_PATH)
    except (ValueError, OSError) as e:
        raise ConfigError(f"Could not set up storage: {str(e)}")

    if completion_service is None:
        completion_service = build_completion_service(settings)

    extractors = [
        AIExtractor(
            completion_service,
            enabled=settings.AI_ENABLED,
            max_text_chars=settings.AI_MAX_TEXT_CHARS,
            timeout_seconds=settings.LLM_TIMEOUT_SECONDS,
        ),
        RuleBasedExtractor(enable_ner=settings.ENABLE_SPACY_NER, spacy_model=settings.SPACY_MODEL),
    ]

    orchestrator = ExtractionOrchestrator(
        record_store=record_store,
        document_store=document_store,
        text_extractor=TextExtractionAgent(),
        extractors=extractors,
        contract_lookup=contract_registry,
        workers=settings.ANALYSIS_WORKERS,
    )
    logger.info(f"Intake services ready (record store: {type(record_store).__name__})")

    return IntakeServices(
        settings=settings,
        document_store=document_store,
        record_store=record_store,
        contract_registry=contract_registry,
        orchestrator=orchestrator,
    )
