"""Tests for EntityResolver."""

import pytest

from conftest import FakeEmbeddingProvider
from tendergraph.ingestion.resolution import EntityResolver
from tendergraph.storage import InMemoryBackend
from tendergraph.types import ExtractedEntity
from tendergraph.utils import normalize_entity_name

OWNER = "user-1"


def _candidate(name, entity_type="supplier", normalized=None, **kwargs):
    return ExtractedEntity(
        entity_type=entity_type,
        name=name,
        normalized_name=normalized if normalized is not None else normalize_entity_name(name),
        **kwargs,
    )


class TestEntityResolver:

    @pytest.mark.asyncio
    async def test_creates_new_entity_with_embedding(self):
        storage = InMemoryBackend()
        embeddings = FakeEmbeddingProvider()
        resolver = EntityResolver(storage, embeddings)

        entity_id, created = await resolver.resolve_one(
            _candidate('ООО "Ромашка"', data={"inn": "7701"}), OWNER
        )

        assert created is True
        stored = await storage.get_entity(entity_id, OWNER)
        assert stored.name == 'ООО "Ромашка"'
        assert stored.normalized_name == "ромашка"
        assert stored.embedding is not None
        assert embeddings.calls == ['supplier: ООО "Ромашка". {"inn": "7701"}']

    @pytest.mark.asyncio
    async def test_reuses_existing_entity(self):
        """Second spelling of the same supplier resolves to the first entity."""
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider())

        first_id, _ = await resolver.resolve_one(_candidate('ООО "Ромашка"'), OWNER)
        second_id, created = await resolver.resolve_one(_candidate("Ромашка ООО"), OWNER)

        assert second_id == first_id
        assert created is False

    @pytest.mark.asyncio
    async def test_type_is_part_of_identity(self):
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider())

        supplier_id, _ = await resolver.resolve_one(_candidate("Ромашка"), OWNER)
        product_id, created = await resolver.resolve_one(
            _candidate("Ромашка", entity_type="product"), OWNER
        )
        assert created is True
        assert product_id != supplier_id

    @pytest.mark.asyncio
    async def test_owners_are_isolated(self):
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider())

        a, _ = await resolver.resolve_one(_candidate("Ромашка"), "owner-a")
        b, created = await resolver.resolve_one(_candidate("Ромашка"), "owner-b")
        assert created is True
        assert a != b

    @pytest.mark.asyncio
    async def test_embedding_failure_defers_vector(self):
        """The entity is stored without a vector, pending backfill."""
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider(fail=True))

        entity_id, created = await resolver.resolve_one(_candidate("Ромашка"), OWNER)

        assert created is True
        assert (await storage.get_entity(entity_id, OWNER)).embedding is None
        assert await storage.count_entities_without_embedding(OWNER) == 1

    @pytest.mark.asyncio
    async def test_soft_deleted_entity_not_reused(self):
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider())

        old_id, _ = await resolver.resolve_one(_candidate("Ромашка"), OWNER)
        await storage.soft_delete_entity(old_id, OWNER)
        new_id, created = await resolver.resolve_one(_candidate("Ромашка"), OWNER)

        assert created is True
        assert new_id != old_id

    @pytest.mark.asyncio
    async def test_resolve_batch(self):
        storage = InMemoryBackend()
        resolver = EntityResolver(storage, FakeEmbeddingProvider())

        batch = await resolver.resolve(
            [
                _candidate('ООО "Ромашка"'),
                _candidate("Сертификат ХАССП", entity_type="certificate"),
                _candidate("Ромашка"),
            ],
            OWNER,
        )

        assert len(batch.created_ids) == 2
        assert len(batch.reused_ids) == 1
        assert batch.resolve("Ромашка") == batch.resolve('ООО "Ромашка"')
        assert batch.resolve("Сертификат ХАССП") is not None
