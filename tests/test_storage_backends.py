"""
Contract tests run against both storage backends.

InMemoryBackend needs nothing; LocalBackend writes DuckDB and LanceDB
files under tmp_path.
"""

import pytest

from conftest import FAKE_DIMENSIONS, bag_of_words_vector
from tendergraph.config import RAGConfig
from tendergraph.storage import InMemoryBackend
from tendergraph.storage.local.backend import LocalBackend
from tendergraph.types import (
    Chunk,
    DocumentRecord,
    DocumentStatus,
    Entity,
    Relation,
    SearchScope,
)

OWNER = "user-1"
OTHER = "user-2"


@pytest.fixture(params=["memory", "local"])
def backend(request, tmp_path):
    if request.param == "memory":
        return InMemoryBackend()
    config = RAGConfig(embedding_dimensions=FAKE_DIMENSIONS)
    return LocalBackend(tmp_path / "kb", config)


def _chunk(index, text, document_id="doc-1", owner=OWNER, tender_id="t-1", module="tenders"):
    return Chunk(
        id=f"{document_id}_chunk_{index:04d}",
        document_id=document_id,
        owner_id=owner,
        chunk_index=index,
        text_content=text,
        char_start=0,
        char_end=len(text),
        embedding=bag_of_words_vector(text),
        metadata={"word_count": len(text.split())},
        module=module,
        tender_id=tender_id,
    )


def _entity(entity_id, name, entity_type="supplier", owner=OWNER, embed=True):
    return Entity(
        id=entity_id,
        owner_id=owner,
        entity_type=entity_type,
        name=name,
        normalized_name=name.lower(),
        data={"note": "тест"},
        embedding=bag_of_words_vector(name) if embed else None,
    )


class TestDocuments:

    @pytest.mark.asyncio
    async def test_status_lifecycle(self, backend):
        async with backend:
            await backend.upsert_document(
                DocumentRecord(id="doc-1", owner_id=OWNER, file_name="tz.pdf")
            )
            await backend.update_document_status(
                "doc-1", OWNER, DocumentStatus.PROCESSING, increment_attempts=True
            )
            await backend.update_document_status(
                "doc-1", OWNER, DocumentStatus.COMPLETED, chunks_count=3
            )

            doc = await backend.get_document("doc-1", OWNER)
            assert doc.status == "completed"
            assert doc.chunks_count == 3
            assert doc.attempts == 1
            assert doc.file_name == "tz.pdf"
            assert doc.processing_error is None

    @pytest.mark.asyncio
    async def test_failure_recorded(self, backend):
        async with backend:
            await backend.upsert_document(DocumentRecord(id="doc-1", owner_id=OWNER))
            await backend.update_document_status(
                "doc-1", OWNER, DocumentStatus.FAILED, error="Unsupported file type: x/y"
            )
            doc = await backend.get_document("doc-1", OWNER)
            assert doc.status == "failed"
            assert doc.processing_error == "Unsupported file type: x/y"

    @pytest.mark.asyncio
    async def test_unknown_document_status_update(self, backend):
        async with backend:
            with pytest.raises(KeyError):
                await backend.update_document_status("nope", OWNER, DocumentStatus.FAILED)

    @pytest.mark.asyncio
    async def test_other_owner_cannot_read(self, backend):
        async with backend:
            await backend.upsert_document(DocumentRecord(id="doc-1", owner_id=OWNER))
            assert await backend.get_document("doc-1", OTHER) is None

    @pytest.mark.asyncio
    async def test_delete_cascades_to_chunks(self, backend):
        async with backend:
            await backend.upsert_document(DocumentRecord(id="doc-1", owner_id=OWNER))
            await backend.upsert_chunks([_chunk(0, "поставка молока")])

            await backend.delete_document("doc-1", OWNER)

            assert await backend.get_document("doc-1", OWNER) is None
            assert await backend.get_chunks("doc-1", OWNER) == []
            hits = await backend.search_chunks(
                bag_of_words_vector("поставка молока"), OWNER, threshold=0.1
            )
            assert hits == []


class TestChunks:

    @pytest.mark.asyncio
    async def test_ordered_by_index(self, backend):
        async with backend:
            await backend.upsert_chunks(
                [_chunk(2, "третий"), _chunk(0, "первый"), _chunk(1, "второй")]
            )
            chunks = await backend.get_chunks("doc-1", OWNER)
            assert [c.chunk_index for c in chunks] == [0, 1, 2]
            assert chunks[0].metadata == {"word_count": 1}

            limited = await backend.get_chunks("doc-1", OWNER, limit=2)
            assert [c.chunk_index for c in limited] == [0, 1]

    @pytest.mark.asyncio
    async def test_delete_chunks_counts(self, backend):
        async with backend:
            await backend.upsert_chunks([_chunk(0, "a b"), _chunk(1, "c d")])
            assert await backend.delete_chunks("doc-1", OWNER) == 2
            assert await backend.delete_chunks("doc-1", OWNER) == 0

    @pytest.mark.asyncio
    async def test_search_ranked_and_thresholded(self, backend):
        async with backend:
            await backend.upsert_chunks(
                [
                    _chunk(0, "сертификат ХАССП на молочную продукцию"),
                    _chunk(1, "сроки поставки и штрафы"),
                ]
            )
            hits = await backend.search_chunks(
                bag_of_words_vector("сертификат ХАССП на молочную продукцию"),
                OWNER,
                threshold=0.7,
            )
            assert [h.chunk.chunk_index for h in hits] == [0]
            assert hits[0].similarity == pytest.approx(1.0, abs=1e-4)

    @pytest.mark.asyncio
    async def test_search_scope(self, backend):
        async with backend:
            await backend.upsert_chunks(
                [
                    _chunk(0, "требования к участникам", tender_id="t-1"),
                    _chunk(0, "требования к участникам", document_id="doc-2", tender_id="t-2"),
                ]
            )
            vector = bag_of_words_vector("требования к участникам")
            hits = await backend.search_chunks(
                vector, OWNER, scope=SearchScope(module="tenders", tender_id="t-2"), threshold=0.5
            )
            assert [h.chunk.document_id for h in hits] == ["doc-2"]

            none = await backend.search_chunks(
                vector, OWNER, scope=SearchScope(module="accounting"), threshold=0.5
            )
            assert none == []

    @pytest.mark.asyncio
    async def test_search_owner_isolation(self, backend):
        async with backend:
            await backend.upsert_chunks([_chunk(0, "секретные условия", owner=OTHER)])
            hits = await backend.search_chunks(
                bag_of_words_vector("секретные условия"), OWNER, threshold=0.1
            )
            assert hits == []

    @pytest.mark.asyncio
    async def test_search_limit(self, backend):
        async with backend:
            await backend.upsert_chunks([_chunk(i, "одинаковый текст") for i in range(5)])
            hits = await backend.search_chunks(
                bag_of_words_vector("одинаковый текст"), OWNER, threshold=0.5, limit=3
            )
            assert len(hits) == 3


class TestEntities:

    @pytest.mark.asyncio
    async def test_find_by_normalized_name(self, backend):
        async with backend:
            await backend.upsert_entity(_entity("e1", "Ромашка"))
            found = await backend.find_entity(OWNER, "supplier", "ромашка")
            assert found.id == "e1"
            assert found.data == {"note": "тест"}
            assert await backend.find_entity(OWNER, "product", "ромашка") is None
            assert await backend.find_entity(OTHER, "supplier", "ромашка") is None

    @pytest.mark.asyncio
    async def test_soft_delete(self, backend):
        async with backend:
            await backend.upsert_entity(_entity("e1", "Ромашка"))
            assert await backend.soft_delete_entity("e1", OWNER) is True
            assert await backend.soft_delete_entity("e1", OWNER) is False

            assert await backend.get_entity("e1", OWNER) is None
            deleted = await backend.get_entity("e1", OWNER, include_deleted=True)
            assert deleted.is_deleted
            assert await backend.find_entity(OWNER, "supplier", "ромашка") is None
            assert await backend.search_entities(
                bag_of_words_vector("Ромашка"), OWNER, threshold=0.1
            ) == []

    @pytest.mark.asyncio
    async def test_get_entities_skips_missing(self, backend):
        async with backend:
            await backend.upsert_entity(_entity("e1", "A"))
            await backend.upsert_entity(_entity("e2", "B"))
            found = await backend.get_entities(["e2", "nope", "e1"], OWNER)
            assert [e.id for e in found] == ["e2", "e1"]

    @pytest.mark.asyncio
    async def test_search_by_type(self, backend):
        async with backend:
            await backend.upsert_entity(_entity("s", "Ромашка"))
            await backend.upsert_entity(_entity("p", "Ромашка", entity_type="product"))
            hits = await backend.search_entities(
                bag_of_words_vector("Ромашка"), OWNER, entity_type="product", threshold=0.5
            )
            assert [h.entity.id for h in hits] == ["p"]

    @pytest.mark.asyncio
    async def test_pending_embeddings(self, backend):
        """Entities without vectors are listed until their vector is set."""
        async with backend:
            await backend.upsert_entity(_entity("e1", "Лютик", embed=False))
            await backend.upsert_entity(_entity("e2", "Ромашка"))

            pending = await backend.list_entities_without_embedding(OWNER, limit=10)
            assert [e.id for e in pending] == ["e1"]
            assert await backend.count_entities_without_embedding(OWNER) == 1
            before = await backend.search_entities(
                bag_of_words_vector("Лютик"), OWNER, threshold=0.9
            )
            assert "e1" not in [h.entity.id for h in before]

            await backend.set_entity_embedding("e1", OWNER, bag_of_words_vector("Лютик"))

            assert await backend.count_entities_without_embedding(OWNER) == 0
            hits = await backend.search_entities(
                bag_of_words_vector("Лютик"), OWNER, threshold=0.9
            )
            assert "e1" in [h.entity.id for h in hits]


class TestRelations:

    @pytest.mark.asyncio
    async def test_unique_edges(self, backend):
        async with backend:
            edge = Relation(
                id="r1", owner_id=OWNER, source_id="a", relation_type="HAS_CERT", target_id="b"
            )
            assert await backend.insert_relation(edge) is True
            assert await backend.insert_relation(edge.model_copy(update={"id": "r2"})) is False

            found = await backend.find_relation(OWNER, "a", "HAS_CERT", "b")
            assert found.id == "r1"
            assert await backend.find_relation(OTHER, "a", "HAS_CERT", "b") is None

    @pytest.mark.asyncio
    async def test_edges_in_both_directions(self, backend):
        async with backend:
            await backend.insert_relation(
                Relation(id="r1", owner_id=OWNER, source_id="a", relation_type="SUPPLIES", target_id="b")
            )
            await backend.insert_relation(
                Relation(id="r2", owner_id=OWNER, source_id="c", relation_type="REFERENCES", target_id="a")
            )
            edges = await backend.get_edges("a", OWNER)
            assert sorted(e.id for e in edges) == ["r1", "r2"]
            assert await backend.get_edges("a", OTHER) == []


class TestSameIdAcrossOwners:
    """Ids are unique per owner only; writes never reach another owner's rows."""

    @pytest.mark.asyncio
    async def test_documents_and_chunks(self, backend):
        async with backend:
            for owner, text in ((OWNER, "поставка молока"), (OTHER, "ремонт дорог")):
                await backend.upsert_document(DocumentRecord(id="doc-1", owner_id=owner))
                await backend.upsert_chunks([_chunk(0, text, owner=owner)])

            await backend.update_document_status(
                "doc-1", OTHER, DocumentStatus.FAILED, error="broken"
            )

            mine = await backend.get_document("doc-1", OWNER)
            assert mine is not None
            assert mine.status == "pending"
            assert [c.text_content for c in await backend.get_chunks("doc-1", OWNER)] == [
                "поставка молока"
            ]
            hits = await backend.search_chunks(
                bag_of_words_vector("поставка молока"), OWNER, threshold=0.9
            )
            assert [h.chunk.text_content for h in hits] == ["поставка молока"]

    @pytest.mark.asyncio
    async def test_delete_keeps_other_owner(self, backend):
        async with backend:
            for owner in (OWNER, OTHER):
                await backend.upsert_document(DocumentRecord(id="doc-1", owner_id=owner))
                await backend.upsert_chunks([_chunk(0, "поставка молока", owner=owner)])

            await backend.delete_document("doc-1", OTHER)

            assert await backend.get_document("doc-1", OWNER) is not None
            assert len(await backend.get_chunks("doc-1", OWNER)) == 1
            hits = await backend.search_chunks(
                bag_of_words_vector("поставка молока"), OWNER, threshold=0.9
            )
            assert len(hits) == 1

    @pytest.mark.asyncio
    async def test_entities(self, backend):
        async with backend:
            await backend.upsert_entity(_entity("e1", "Ромашка", owner=OWNER))
            await backend.upsert_entity(_entity("e1", "Лютик", owner=OTHER))

            assert await backend.soft_delete_entity("e1", OTHER) is True

            mine = await backend.get_entity("e1", OWNER)
            assert mine is not None
            assert mine.name == "Ромашка"
            hits = await backend.search_entities(
                bag_of_words_vector("Ромашка"), OWNER, threshold=0.9
            )
            assert [h.entity.id for h in hits] == ["e1"]


class TestLocalBackendOnly:
    """Behaviour specific to the DuckDB + LanceDB backend."""

    @pytest.mark.asyncio
    async def test_invalid_owner_rejected(self, tmp_path):
        backend = LocalBackend(tmp_path / "kb", RAGConfig(embedding_dimensions=FAKE_DIMENSIONS))
        async with backend:
            with pytest.raises(ValueError):
                await backend.search_chunks([0.0] * FAKE_DIMENSIONS, "x' OR '1'='1")

    @pytest.mark.asyncio
    async def test_dimension_mismatch_rejected(self, tmp_path):
        async with LocalBackend(tmp_path / "kb", RAGConfig(embedding_dimensions=FAKE_DIMENSIONS)):
            pass
        with pytest.raises(ValueError, match="dimensional"):
            await LocalBackend(tmp_path / "kb", RAGConfig(embedding_dimensions=128)).initialize()

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, tmp_path):
        config = RAGConfig(embedding_dimensions=FAKE_DIMENSIONS)
        async with LocalBackend(tmp_path / "kb", config) as backend:
            await backend.upsert_entity(_entity("e1", "Ромашка"))
            await backend.upsert_chunks([_chunk(0, "поставка молока")])

        async with LocalBackend(tmp_path / "kb", config) as backend:
            assert (await backend.get_entity("e1", OWNER)).name == "Ромашка"
            hits = await backend.search_chunks(
                bag_of_words_vector("поставка молока"), OWNER, threshold=0.9
            )
            assert len(hits) == 1
