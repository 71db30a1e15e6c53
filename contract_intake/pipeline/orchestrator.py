import asyncio
import logging
from typing import Dict, Iterable, Optional, Tuple

from contract_intake.agents.base import FieldExtractor
from contract_intake.agents.text_extraction_agent import TextExtractionAgent
from contract_intake.core.errors import (
    AnalysisNotFound,
    DocumentNotFound,
    ExtractionError,
    InvalidStatusTransition,
    PersistenceError,
    RecordCreationFailure,
)
from contract_intake.database.contract_registry import ContractRegistry
from contract_intake.database.document_store import LocalDocumentStore
from contract_intake.database.record_store import AnalysisRecordStore
from contract_intake.pipeline.task_queue import AnalysisTaskQueue
from contract_intake.schemas.analysis import (
    AnalysisRecord,
    AnalysisStatus,
    ExtractionStrategy,
    FieldBundle,
)

logger = logging.getLogger(__name__)

# Strategies are tried in this order until one yields a bundle
STRATEGY_ORDER = (ExtractionStrategy.AI, ExtractionStrategy.RULE_BASED)

INTERRUPTED_MESSAGE = "Analysis interrupted by a service restart"


class ExtractionOrchestrator:
    """Accepts analysis requests and runs them through the extraction strategies.

    ``submit`` only creates the PENDING record and queues it; the actual work
    happens in ``process``, which the task queue calls for each analysis id.
    Nothing raised inside ``process`` reaches the caller: outcomes end up on
    the analysis record.
    """

    def __init__(
        self,
        record_store: AnalysisRecordStore,
        document_store: LocalDocumentStore,
        text_extractor: TextExtractionAgent,
        extractors: Iterable[FieldExtractor],
        contract_lookup: Optional[ContractRegistry] = None,
        workers: Optional[int] = None,
    ):
        self.record_store = record_store
        self.document_store = document_store
        self.text_extractor = text_extractor
        self.extractors: Dict[ExtractionStrategy, FieldExtractor] = {
            extractor.strategy: extractor for extractor in extractors
        }
        self.contract_lookup = contract_lookup
        self.queue = AnalysisTaskQueue(self.process, workers=workers)

    async def submit(self, document_id: str, user_id: Optional[str], tenant_id: str) -> AnalysisRecord:
        """Create a PENDING analysis for a document and queue it.

        Args:
            document_id: Stored document to analyze
            user_id: Requesting user
            tenant_id: Requesting tenant

        Returns:
            The PENDING record

        Raises:
            DocumentNotFound: when the document does not exist for this tenant
            RecordCreationFailure: when the record cannot be stored
        """
        info = await asyncio.to_thread(self.document_store.get, document_id)
        if info.tenant_id != tenant_id:
            raise DocumentNotFound(document_id)

        record = AnalysisRecord(document_id=document_id, tenant_id=tenant_id, user_id=user_id)
        try:
            record = await asyncio.to_thread(self.record_store.create, record)
        except (PersistenceError, ValueError) as e:
            logger.error(f"Error creating analysis record for document {document_id}: {str(e)}")
            raise RecordCreationFailure(
                f"Could not create analysis record for document {document_id}",
                {"error": str(e)},
            )

        self.queue.enqueue(record.id)
        logger.info(f"Queued analysis {record.id} for document {document_id}")
        return record

    async def get_status(self, analysis_id: str, tenant_id: Optional[str] = None) -> AnalysisRecord:
        record = await asyncio.to_thread(self.record_store.get, analysis_id)
        if record is None or (tenant_id is not None and record.tenant_id != tenant_id):
            raise AnalysisNotFound(analysis_id)
        return record

    async def process(self, analysis_id: str) -> None:
        """Run one analysis from PENDING to a terminal status."""
        try:
            record = await asyncio.to_thread(
                self.record_store.update_status,
                analysis_id,
                AnalysisStatus.PROCESSING,
                confidence={},
            )
        except InvalidStatusTransition as e:
            logger.info(f"Skipping analysis {analysis_id}, already {e.current}")
            return
        except PersistenceError as e:
            logger.error(f"Could not start analysis {analysis_id}: {str(e)}")
            return

        logger.info(f"Processing analysis {analysis_id} for document {record.document_id}")

        try:
            text, title = await self._load_text(record.document_id)
        except Exception as e:
            logger.error(f"Error loading document {record.document_id}: {str(e)}")
            await self._fail(analysis_id, f"Document could not be loaded: {str(e)}")
            return

        bundle, errors = await self._extract(text, title)
        if bundle is None:
            message = (
                f"AI extraction failed: {errors.get(ExtractionStrategy.AI, 'not attempted')}; "
                f"rule-based extraction failed: {errors.get(ExtractionStrategy.RULE_BASED, 'not attempted')}"
            )
            await self._fail(analysis_id, message)
            return

        suggested_contract_id = await self._suggest_contract(record.tenant_id, bundle.vendor)
        raw_result = {
            "strategy": bundle.strategy.value,
            "payload": bundle.raw,
            "ai_error": errors.get(ExtractionStrategy.AI),
        }

        try:
            await asyncio.to_thread(
                self.record_store.update_status,
                analysis_id,
                AnalysisStatus.COMPLETED,
                **bundle.fields(),
                confidence=bundle.confidence,
                suggested_contract_id=suggested_contract_id,
                raw_result=raw_result,
            )
        except Exception as e:
            logger.error(f"Error storing result of analysis {analysis_id}: {str(e)}")
            await self._fail(analysis_id, f"Could not store extraction result: {str(e)}")
            return

        logger.info(f"Completed analysis {analysis_id} with {bundle.strategy.value} extraction")

    async def recover(self) -> Dict[str, int]:
        """Reconcile records left behind by a previous run.

        PROCESSING records were interrupted mid-flight and are failed;
        PENDING records never started and are queued again.
        """
        interrupted = await asyncio.to_thread(self.record_store.list_by_status, AnalysisStatus.PROCESSING)
        for record in interrupted:
            await self._fail(record.id, INTERRUPTED_MESSAGE)

        pending = await asyncio.to_thread(self.record_store.list_by_status, AnalysisStatus.PENDING)
        requeued = sum(1 for record in pending if self.queue.enqueue(record.id))

        if interrupted or requeued:
            logger.info(f"Recovery: {requeued} analyses requeued, {len(interrupted)} marked failed")
        return {"requeued": requeued, "failed": len(interrupted)}

    async def _load_text(self, document_id: str) -> Tuple[str, Optional[str]]:
        info = await asyncio.to_thread(self.document_store.get, document_id)
        data = await asyncio.to_thread(self.document_store.read_bytes, document_id)
        text = await asyncio.to_thread(self.text_extractor.extract, data, info.mime_type)

        if not text or not text.strip():
            logger.info(f"No text extracted from {info.filename}, using document metadata")
            text = f"Document title: {info.title or info.filename}\nFilename: {info.filename}"
        return text, info.title

    async def _extract(
        self, text: str, title: Optional[str]
    ) -> Tuple[Optional[FieldBundle], Dict[ExtractionStrategy, str]]:
        errors: Dict[ExtractionStrategy, str] = {}

        for strategy in STRATEGY_ORDER:
            extractor = self.extractors.get(strategy)
            if extractor is None or not extractor.is_available():
                errors[strategy] = f"{strategy.value} extraction is not available"
                logger.info(f"Skipping {strategy.value} extraction, not available")
                continue

            try:
                return await extractor.extract(text, title), errors
            except ExtractionError as e:
                errors[strategy] = str(e)
            except Exception as e:
                errors[strategy] = f"unexpected error: {str(e)}"
            logger.warning(f"{strategy.value} extraction failed, falling back: {errors[strategy]}")

        return None, errors

    async def _suggest_contract(self, tenant_id: str, vendor: Optional[str]) -> Optional[str]:
        if self.contract_lookup is None or not vendor:
            return None
        try:
            return await asyncio.to_thread(self.contract_lookup.find_by_counterparty_substring, tenant_id, vendor)
        except Exception as e:
            logger.warning(f"Contract lookup failed for vendor {vendor}: {str(e)}")
            return None

    async def _fail(self, analysis_id: str, message: str) -> None:
        try:
            await asyncio.to_thread(
                self.record_store.update_status,
                analysis_id,
                AnalysisStatus.FAILED,
                error=message,
            )
            logger.info(f"Analysis {analysis_id} failed: {message}")
        except Exception as e:
            logger.error(f"Could not mark analysis {analysis_id} as failed, left in PROCESSING: {str(e)}")
