# -*- coding: utf-8 -*-
"""
Provenance Tracking for the FuelEU Compliance Service

SHA-256 chain-hashed operation log for compliance balance computations,
banking ledger transactions, pool allocations, baseline changes and
route comparisons. Every service result carries the chain hash of the
entry recorded for it, so a reported figure can be traced back to the
inputs that produced it.

Guarantees:
    - All hashes are deterministic SHA-256 over sorted-key JSON
    - Each entry's hash incorporates the previous entry's hash
    - JSON export for external audit systems

Entity Types (5):
    compliance_balance, ledger_entry, pool, route, comparison

Actions (7):
    compute, compare, bank, apply, allocate, set_baseline, seed

Example:
    >>> from fueleu.provenance import ProvenanceTracker
    >>> tracker = ProvenanceTracker()
    >>> entry = tracker.record("ledger_entry", "bank", "S1:2024")
    >>> assert tracker.verify_chain() is True

Author: FuelEU Platform Team
Status: Production Ready
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from fueleu.determinism import utcnow
from fueleu.models import EntityType

logger = logging.getLogger(__name__)

#: Default genesis anchor, matches FuelEUConfig.genesis_hash.
DEFAULT_GENESIS = "GL-FUELEU-MARITIME-GENESIS"


# ---------------------------------------------------------------------------
# ProvenanceEntry dataclass
# ---------------------------------------------------------------------------


@dataclass
class ProvenanceEntry:
    """A single tamper-evident provenance record.

    Attributes:
        entity_type: Type of entity being tracked.
        entity_id: Identifier of the entity instance.
        action: Action performed.
        hash_value: SHA-256 chain hash of this entry.
        parent_hash: Chain hash of the preceding entry.
        timestamp: UTC ISO-formatted timestamp.
        metadata: Additional contextual fields (always holds data_hash).
    """

    entity_type: str
    entity_id: str
    action: str
    hash_value: str
    parent_hash: str
    timestamp: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the entry to a plain dictionary."""
        result: Dict[str, Any] = {
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "action": self.action,
            "hash_value": self.hash_value,
            "parent_hash": self.parent_hash,
            "timestamp": self.timestamp,
        }
        if self.metadata:
            result["metadata"] = self.metadata
        return result


VALID_ENTITY_TYPES = frozenset(e.value for e in EntityType)

VALID_ACTIONS = frozenset({
    "compute",
    "compare",
    "bank",
    "apply",
    "allocate",
    "set_baseline",
    "seed",
})


# ---------------------------------------------------------------------------
# ProvenanceTracker
# ---------------------------------------------------------------------------


class ProvenanceTracker:
    """Ordered SHA-256 chain of provenance entries.

    The genesis hash anchors the chain. Every new entry incorporates the
    previous chain hash so that tampering is detectable via
    :meth:`verify_chain`. Thread-safe via a reentrant lock.

    Example:
        >>> tracker = ProvenanceTracker()
        >>> entry = tracker.record(
        ...     "pool", "allocate", "pool-1", data={"total": 40.0},
        ... )
        >>> entry.parent_hash == tracker.genesis_hash
        True
    """

    def __init__(self, genesis_hash: str = DEFAULT_GENESIS) -> None:
        """Initialize the tracker with a genesis hash anchor.

        Args:
            genesis_hash: String used to compute the genesis hash.
        """
        self._genesis_hash: str = hashlib.sha256(
            genesis_hash.encode("utf-8")
        ).hexdigest()
        self._entries: List[ProvenanceEntry] = []
        self._last_hash: str = self._genesis_hash
        self._lock = threading.RLock()
        logger.debug(
            "ProvenanceTracker initialized with genesis prefix=%s",
            self._genesis_hash[:16],
        )

    def record(
        self,
        entity_type: str,
        action: str,
        entity_id: str,
        data: Optional[Any] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ProvenanceEntry:
        """Append a provenance entry for an operation.

        Args:
            entity_type: One of VALID_ENTITY_TYPES.
            action: One of VALID_ACTIONS.
            entity_id: Identifier of the entity.
            data: Optional JSON-serializable payload; its hash is stored.
            metadata: Optional extra contextual fields.

        Returns:
            The newly created ProvenanceEntry.

        Raises:
            ValueError: If the entity type or action is unknown, or the
                entity id is empty.
        """
        if entity_type not in VALID_ENTITY_TYPES:
            raise ValueError(f"Unknown provenance entity_type '{entity_type}'")
        if action not in VALID_ACTIONS:
            raise ValueError(f"Unknown provenance action '{action}'")
        if not entity_id:
            raise ValueError("entity_id must not be empty")

        timestamp = utcnow().isoformat()
        data_hash = self.build_hash(data)

        entry_metadata: Dict[str, Any] = {"data_hash": data_hash}
        if metadata:
            entry_metadata.update(metadata)

        with self._lock:
            parent_hash = self._last_hash
            chain_hash = self._compute_chain_hash(
                parent_hash=parent_hash,
                data_hash=data_hash,
                action=action,
                timestamp=timestamp,
            )
            entry = ProvenanceEntry(
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                hash_value=chain_hash,
                parent_hash=parent_hash,
                timestamp=timestamp,
                metadata=entry_metadata,
            )
            self._entries.append(entry)
            self._last_hash = chain_hash

        logger.debug(
            "Provenance entry added: %s/%s action=%s hash=%s",
            entity_type, entity_id, action, chain_hash[:16],
        )
        return entry

    def verify_chain(self) -> bool:
        """Verify the integrity of the entire provenance chain.

        Returns:
            True if the chain is intact, False if any link is broken.
        """
        with self._lock:
            chain = list(self._entries)

        expected_parent = self._genesis_hash
        for i, entry in enumerate(chain):
            if entry.parent_hash != expected_parent:
                logger.warning(
                    "verify_chain: chain break at entry[%d]", i,
                )
                return False
            recomputed = self._compute_chain_hash(
                parent_hash=entry.parent_hash,
                data_hash=entry.metadata.get("data_hash", ""),
                action=entry.action,
                timestamp=entry.timestamp,
            )
            if recomputed != entry.hash_value:
                logger.warning(
                    "verify_chain: hash mismatch at entry[%d]", i,
                )
                return False
            expected_parent = entry.hash_value

        return True

    def get_entries(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[ProvenanceEntry]:
        """Return entries filtered by entity type, id and action.

        Args:
            entity_type: Optional entity type filter.
            entity_id: Optional entity id filter.
            action: Optional action filter.
            limit: Optional max entries to return (most recent).

        Returns:
            Filtered list of ProvenanceEntry objects.
        """
        with self._lock:
            entries = list(self._entries)

        if entity_type:
            entries = [e for e in entries if e.entity_type == entity_type]
        if entity_id:
            entries = [e for e in entries if e.entity_id == entity_id]
        if action:
            entries = [e for e in entries if e.action == action]
        if limit is not None and 0 < limit < len(entries):
            entries = entries[-limit:]
        return entries

    def export_json(self) -> str:
        """Export all provenance records as an indented JSON string."""
        with self._lock:
            chain_dicts = [entry.to_dict() for entry in self._entries]
        return json.dumps(chain_dicts, indent=2, default=str)

    def clear(self) -> None:
        """Clear all entries and reset to genesis."""
        with self._lock:
            self._entries.clear()
            self._last_hash = self._genesis_hash
        logger.info("ProvenanceTracker reset to genesis state")

    def build_hash(self, data: Optional[Any]) -> str:
        """Compute a SHA-256 hash for arbitrary data.

        Pydantic models are dumped in JSON mode first.

        Args:
            data: Any JSON-serializable object, model, or None.

        Returns:
            Hex-encoded SHA-256 hash string.
        """
        if data is None:
            serialized = "null"
        else:
            if hasattr(data, "model_dump"):
                data = data.model_dump(mode="json")
            serialized = json.dumps(data, sort_keys=True, default=str)
        return hashlib.sha256(serialized.encode("utf-8")).hexdigest()

    @staticmethod
    def _compute_chain_hash(
        parent_hash: str,
        data_hash: str,
        action: str,
        timestamp: str,
    ) -> str:
        combined = json.dumps(
            {
                "action": action,
                "data_hash": data_hash,
                "parent_hash": parent_hash,
                "timestamp": timestamp,
            },
            sort_keys=True,
        )
        return hashlib.sha256(combined.encode("utf-8")).hexdigest()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def entry_count(self) -> int:
        """Return the total number of entries in the chain."""
        with self._lock:
            return len(self._entries)

    @property
    def genesis_hash(self) -> str:
        """Return the genesis hash that anchors the chain."""
        return self._genesis_hash

    @property
    def last_hash(self) -> str:
        """Return the most recent chain hash."""
        with self._lock:
            return self._last_hash

    def __len__(self) -> int:
        return self.entry_count

    def __repr__(self) -> str:
        return (
            f"ProvenanceTracker(entries={self.entry_count}, "
            f"genesis_prefix={self._genesis_hash[:12]})"
        )


__all__ = [
    "DEFAULT_GENESIS",
    "ProvenanceEntry",
    "VALID_ENTITY_TYPES",
    "VALID_ACTIONS",
    "ProvenanceTracker",
]
