"""Embedding sync state machine.

Tracks, per stable chunk key, whether the chunk's current content has an
embedding. States move ``pending -> completed``, ``pending -> failed ->
pending`` (on reset) and ``* -> removed`` when a key disappears from the
current chunk set.
"""

import hashlib
import json
from datetime import datetime
from typing import Any, Optional

from ..base import BaseStore
from ..exceptions import TrackerPersistenceError
from ..models import DocumentChunk, EmbeddingRecord, SyncRecord, SyncResult, SyncStatus
from ..utils.logging import get_logger

logger = get_logger(__name__)

SYNC_PREFIX = "sync:"
EMBEDDING_PREFIX = "embedding:"
CHUNK_PREFIX = "chunk:"

# Metadata hashed alongside content. Tags and enrichment lists are excluded.
IDENTITY_FIELDS = ("type", "namespace", "class_name", "method_name", "source_file", "line_number")


def content_hash(chunk: DocumentChunk) -> str:
    """sha256 of canonical JSON over content and identifying metadata."""
    payload = {"content": chunk.content}
    for field in IDENTITY_FIELDS:
        payload[field] = getattr(chunk.metadata, field)
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class EmbeddingsTracker:
    """Persists sync state and embeddings in a key-value store.

    Every store failure surfaces as TrackerPersistenceError.

    Example:
        ```python
        tracker = EmbeddingsTracker(MemoryStore())
        result = await tracker.sync_chunks(chunks)
        for chunk in result.to_embed:
            ...
        ```
    """

    def __init__(self, store: BaseStore):
        self.store = store

    async def _get(self, key: str) -> Optional[dict[str, Any]]:
        try:
            return await self.store.get(key)
        except Exception as e:
            raise TrackerPersistenceError(f"Failed to read {key!r}: {e}") from e

    async def _put(self, key: str, value: dict[str, Any]) -> None:
        try:
            await self.store.put(key, value)
        except Exception as e:
            raise TrackerPersistenceError(f"Failed to write {key!r}: {e}") from e

    async def _delete(self, key: str) -> bool:
        try:
            return await self.store.delete(key)
        except Exception as e:
            raise TrackerPersistenceError(f"Failed to delete {key!r}: {e}") from e

    async def _scan(self, prefix: str) -> list[tuple[str, dict[str, Any]]]:
        try:
            return await self.store.scan(prefix)
        except Exception as e:
            raise TrackerPersistenceError(f"Failed to scan {prefix!r}: {e}") from e

    async def _records(self) -> dict[str, SyncRecord]:
        return {
            key[len(SYNC_PREFIX):]: SyncRecord.model_validate(value)
            for key, value in await self._scan(SYNC_PREFIX)
        }

    async def _save(self, record: SyncRecord) -> None:
        await self._put(f"{SYNC_PREFIX}{record.key}", record.model_dump(mode="json"))

    async def get_record(self, chunk: DocumentChunk | str) -> Optional[SyncRecord]:
        key = chunk if isinstance(chunk, str) else chunk.stable_key
        value = await self._get(f"{SYNC_PREFIX}{key}")
        return SyncRecord.model_validate(value) if value is not None else None

    async def sync_chunks(self, chunks: list[DocumentChunk]) -> SyncResult:
        """Diff the current chunk set against tracked state.

        Args:
            chunks: The complete current chunk set

        Returns:
            Chunks classified as new, updated, unchanged or requeued, plus
            the keys that vanished and were marked removed
        """
        existing = await self._records()
        result = SyncResult()
        seen: set[str] = set()
        now = datetime.now()

        for chunk in chunks:
            key = chunk.stable_key
            if key in seen:
                logger.warning(f"Duplicate chunk key {key!r}; keeping the first occurrence")
                continue
            seen.add(key)

            digest = content_hash(chunk)
            record = existing.get(key)

            if record is None or record.status == "removed":
                await self._save(SyncRecord(key=key, chunk_id=chunk.id, content_hash=digest, updated_at=now))
                result.new.append(chunk)
            elif record.content_hash != digest:
                await self._delete(f"{EMBEDDING_PREFIX}{key}")
                await self._save(SyncRecord(key=key, chunk_id=chunk.id, content_hash=digest, updated_at=now))
                result.updated.append(chunk)
            elif record.status == "completed":
                result.unchanged.append(chunk)
            else:
                result.requeued.append(chunk)

        for key, record in existing.items():
            if key in seen or record.status == "removed":
                continue
            await self._save(record.model_copy(update={"status": "removed", "updated_at": now}))
            result.removed.append(key)

        logger.info(
            f"Sync: {len(result.new)} new, {len(result.updated)} updated, "
            f"{len(result.unchanged)} unchanged, {len(result.requeued)} requeued, "
            f"{len(result.removed)} removed"
        )
        return result

    async def mark_completed(self, chunk: DocumentChunk, record: EmbeddingRecord) -> None:
        """Persist the embedding and move the chunk to completed."""
        key = chunk.stable_key
        await self._put(f"{EMBEDDING_PREFIX}{key}", record.model_dump(mode="json"))

        current = await self.get_record(key)
        if current is None:
            current = SyncRecord(key=key, chunk_id=chunk.id, content_hash=content_hash(chunk))

        await self._save(current.model_copy(update={
            "chunk_id": chunk.id,
            "status": "completed",
            "failure_reason": None,
            "model": record.model,
            "token_count": record.token_count,
            "last_embedded_at": record.timestamp,
            "updated_at": datetime.now(),
        }))

    async def mark_failed(self, chunk: DocumentChunk, reason: str) -> None:
        """Move the chunk to failed and bump its retry count."""
        key = chunk.stable_key
        current = await self.get_record(key)
        if current is None:
            current = SyncRecord(key=key, chunk_id=chunk.id, content_hash=content_hash(chunk))

        await self._save(current.model_copy(update={
            "status": "failed",
            "retry_count": current.retry_count + 1,
            "failure_reason": reason,
            "updated_at": datetime.now(),
        }))

    async def reset_failed_embeddings(self) -> int:
        """Return every failed record to pending.

        Returns:
            Number of records reset
        """
        count = 0
        for record in (await self._records()).values():
            if record.status != "failed":
                continue
            await self._save(record.model_copy(update={
                "status": "pending",
                "failure_reason": None,
                "updated_at": datetime.now(),
            }))
            count += 1

        if count:
            logger.info(f"Reset {count} failed embeddings to pending")
        return count

    async def get_by_status(self, status: SyncStatus) -> list[SyncRecord]:
        return [r for r in (await self._records()).values() if r.status == status]

    async def get_embedding(self, chunk: DocumentChunk | str) -> Optional[EmbeddingRecord]:
        key = chunk if isinstance(chunk, str) else chunk.stable_key
        value = await self._get(f"{EMBEDDING_PREFIX}{key}")
        return EmbeddingRecord.model_validate(value) if value is not None else None

    async def get_embeddings(self) -> dict[str, EmbeddingRecord]:
        """All stored embeddings by stable key."""
        return {
            key[len(EMBEDDING_PREFIX):]: EmbeddingRecord.model_validate(value)
            for key, value in await self._scan(EMBEDDING_PREFIX)
        }

    async def save_chunks(self, chunks: list[DocumentChunk]) -> None:
        """Store chunk bodies so pending work can resume in a later run.

        A repeated key keeps its first body, as in sync_chunks.
        """
        seen: set[str] = set()
        for chunk in chunks:
            if chunk.stable_key in seen:
                continue
            seen.add(chunk.stable_key)
            await self._put(f"{CHUNK_PREFIX}{chunk.stable_key}", chunk.model_dump(mode="json"))

    async def load_chunks(self, keys: Optional[set[str]] = None) -> list[DocumentChunk]:
        """Load stored chunks, optionally restricted to the given keys."""
        chunks = []
        for key, value in await self._scan(CHUNK_PREFIX):
            if keys is not None and key[len(CHUNK_PREFIX):] not in keys:
                continue
            chunks.append(DocumentChunk.model_validate(value))
        return chunks

    async def get_stats(self) -> dict[str, Any]:
        """Counts per status plus token totals and models used."""
        records = list((await self._records()).values())
        stats: dict[str, Any] = {"total": len(records)}
        for status in ("pending", "completed", "failed", "removed"):
            stats[status] = sum(1 for r in records if r.status == status)
        stats["total_tokens"] = sum(r.token_count or 0 for r in records if r.status == "completed")
        stats["models"] = sorted({r.model for r in records if r.model})
        embedded = [r.last_embedded_at for r in records if r.last_embedded_at]
        stats["last_embedded_at"] = max(embedded).isoformat() if embedded else None
        return stats

    async def cleanup_removed(self) -> int:
        """Delete removed records and their embeddings.

        Returns:
            Number of records deleted
        """
        count = 0
        for record in await self.get_by_status("removed"):
            await self._delete(f"{EMBEDDING_PREFIX}{record.key}")
            await self._delete(f"{CHUNK_PREFIX}{record.key}")
            await self._delete(f"{SYNC_PREFIX}{record.key}")
            count += 1

        if count:
            logger.info(f"Cleaned up {count} removed chunks")
        return count

    async def export(self) -> dict[str, Any]:
        """Snapshot of all sync records and stats, JSON-compatible."""
        records = await self._records()
        return {
            "exported_at": datetime.now().isoformat(),
            "stats": await self.get_stats(),
            "records": [records[key].model_dump(mode="json") for key in sorted(records)],
        }
