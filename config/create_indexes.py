#!/usr/bin/env python3
"""
Create the message-embeddings collection and its payload indexes

Every search and delete filters on analysis_id, so that field needs a
keyword index on a real Qdrant server.
"""

from qdrant_client import QdrantClient
from qdrant_client.models import PayloadSchemaType

from config.settings import Settings, configure_logging
from retrieval.embedding import BGE_M3_DIMENSIONS
from retrieval.vector_store import ANALYSIS_FIELD, VectorStore, create_qdrant_client

# Secondary fields used for ordering/inspection
EXTRA_INDEXES = (
    ("chunk_index", PayloadSchemaType.INTEGER),
    ("sender", PayloadSchemaType.KEYWORD),
)


def vector_size_for(settings: Settings) -> int:
    if settings.embedding_backend in ("bge-m3", "local"):
        return BGE_M3_DIMENSIONS
    return settings.embedding_dimensions


def create_indexes(settings: Settings, client: QdrantClient = None):
    """Create the collection (if missing) and indexes for common filter fields"""

    if client is None:
        if not settings.qdrant_url:
            raise ValueError("QDRANT_URL environment variable is required")
        print("Connecting to Qdrant...")
        client = create_qdrant_client(settings.qdrant_url, settings.qdrant_api_key)

    store = VectorStore(client, settings.collection_name, vector_size_for(settings))
    print(f"\nPreparing collection: {settings.collection_name} ({store.vector_size} dims)\n")
    store.ensure_collection()
    print(f"✓ Collection ready with '{ANALYSIS_FIELD}' index")

    for field_name, schema in EXTRA_INDEXES:
        print(f"\nCreating index for '{field_name}' field...")
        try:
            client.create_payload_index(
                collection_name=settings.collection_name,
                field_name=field_name,
                field_schema=schema,
            )
            print(f"✓ '{field_name}' index created successfully")
        except Exception as e:
            print(f"✗ Error creating '{field_name}' index: {e}")

    print("\n" + "="*70)
    print("Index creation complete!")
    print("="*70)


if __name__ == "__main__":
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    create_indexes(settings)
