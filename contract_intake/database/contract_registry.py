import os
import json
import uuid
import logging
import threading
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from contract_intake.core.errors import PersistenceError
from contract_intake.schemas.documents import ContractSummary

logger = logging.getLogger(__name__)


class ContractRegistry:
    """Existing contracts per tenant, used to suggest where an upload belongs."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize the registry.

        Args:
            path: JSON file backing the registry; memory only when None
        """
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._contracts: List[ContractSummary] = []

        if self.path and self.path.exists():
            self._contracts = self._read()
            logger.info(f"Loaded {len(self._contracts)} contracts from {self.path}")

    def register(self, tenant_id: str, counterparty_name: str, title: Optional[str] = None) -> ContractSummary:
        contract = ContractSummary(
            contract_id=str(uuid.uuid4()),
            tenant_id=tenant_id,
            counterparty_name=counterparty_name.strip(),
            title=title,
        )
        with self._lock:
            self._contracts.append(contract)
            try:
                self._persist()
            except PersistenceError:
                self._contracts.remove(contract)
                raise
        logger.info(f"Registered contract {contract.contract_id} with {contract.counterparty_name}")
        return contract

    def list(self, tenant_id: str) -> List[ContractSummary]:
        with self._lock:
            return [contract for contract in self._contracts if contract.tenant_id == tenant_id]

    def find_by_counterparty_substring(self, tenant_id: str, name: Optional[str]) -> Optional[str]:
        """Find the first contract whose counterparty name contains a vendor name.

        Args:
            tenant_id: Tenant whose contracts are searched
            name: Vendor name, compared case-insensitively

        Returns:
            Contract id, or None when nothing matches
        """
        needle = (name or "").strip().lower()
        if not needle:
            return None

        for contract in self.list(tenant_id):
            if needle in contract.counterparty_name.lower():
                return contract.contract_id
        return None

    def _read(self) -> List[ContractSummary]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return [ContractSummary.model_validate(item) for item in data]
        except (OSError, ValueError, TypeError, ValidationError) as e:
            logger.error(f"Error reading contract registry {self.path}: {str(e)}")
            raise PersistenceError(f"Could not read contract registry {self.path}", {"error": str(e)})

    def _persist(self) -> None:
        if self.path is None:
            return
        payload: List[Dict] = [contract.model_dump(mode="json") for contract in self._contracts]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Error writing contract registry {self.path}: {str(e)}")
            raise PersistenceError(f"Could not write contract registry {self.path}", {"error": str(e)})
