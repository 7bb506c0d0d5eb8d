"""Seed a ready collection with sample passages for local development."""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path

import numpy as np

from guarded_rag.config.constants import COLLECTION_READY_STATUS
from guarded_rag.config.settings import Settings
from guarded_rag.embeddings.openai_embedder import OpenAIEmbedder
from guarded_rag.guardrails.policy_config import build_policy_config
from guarded_rag.guardrails.policy_engine import PolicyEngine
from guarded_rag.models.domain import Collection, ContentType
from guarded_rag.storage.sqlite_collection_store import SQLiteCollectionStore
from guarded_rag.vectorstore.faiss_store import FAISSSimilaritySearch, IndexedPassage

SAMPLE_DOCS = [
    {
        "filename": "ai_overview.md",
        "content": """Artificial Intelligence (AI) is the simulation of human intelligence in machines. These machines are programmed to reason about problems and mimic human decisions.

There are three main types of AI. Narrow AI is designed for specific tasks such as voice assistants and chess engines. General AI is a hypothetical system with human-level intelligence. Super AI would surpass human intelligence.

Machine learning is a subset of AI that enables systems to learn from data. Key approaches include supervised learning, unsupervised learning and reinforcement learning.

Deep learning uses neural networks with many layers. It has been particularly successful in image recognition, natural language processing and speech recognition.
""",
    },
    {
        "filename": "rag_systems.md",
        "content": """Retrieval-Augmented Generation (RAG) combines information retrieval with text generation. It retrieves relevant passages and uses them as context for generating answers.

A typical RAG system includes a document store holding the knowledge base, a retriever that finds relevant passages for a question, and a generator that writes answers from the retrieved context.

Reranking reorders retrieved passages by how well they answer the question. A language model can judge relevance more precisely than vector similarity alone.

Guardrails check questions, retrieved context and generated answers against content policies, so confidential data and toxic content never reach the caller.
""",
    },
]


def split_passages(text: str) -> list[str]:
    return [p.strip() for p in text.split("\n\n") if p.strip()]


async def main(owner_id: str, collection_id: str) -> None:
    settings = Settings()
    Path(settings.sqlite_collection_db_path).parent.mkdir(parents=True, exist_ok=True)

    collection_store = SQLiteCollectionStore(settings.sqlite_collection_db_path)
    await collection_store.initialize()

    embedder = OpenAIEmbedder(
        api_key=settings.openai_api_key,
        model=settings.embedding_model,
        dimensions=settings.embedding_dimensions,
    )
    search = FAISSSimilaritySearch(
        dimensions=settings.embedding_dimensions,
        index_path=settings.faiss_index_path,
    )
    policy = PolicyEngine(
        build_policy_config(
            extra_toxic_terms=settings.policy_extra_toxic_terms,
            extra_org_patterns=settings.policy_extra_org_patterns,
            redaction_token=settings.policy_redaction_token,
        )
    )

    total = 0
    for doc in SAMPLE_DOCS:
        # Uploaded knowledge is validated like any other content
        policy.enforce(doc["content"], ContentType.KNOWLEDGE_UPLOAD)

        passages = [
            IndexedPassage(
                passage_id=f"{doc['filename']}#{i}",
                text=text,
                chunk_index=i,
                document_label=doc["filename"],
            )
            for i, text in enumerate(split_passages(doc["content"]))
        ]
        embeddings = await embedder.embed_texts([p.text for p in passages])
        await search.add_safe(
            owner_id, collection_id, passages, np.array(embeddings, dtype=np.float32)
        )
        total += len(passages)
        print(f"Indexed {doc['filename']}: {len(passages)} passages")

    await collection_store.save_collection(
        Collection(
            collection_id=collection_id,
            owner_id=owner_id,
            status=COLLECTION_READY_STATUS,
            name="Sample knowledge base",
        )
    )
    search.save()

    print(f"\nCollection {collection_id} ready for {owner_id}: {total} passages")
    print(f"Vector index size: {search.size}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--owner", default="demo-user")
    parser.add_argument("--collection", default="sample-kb")
    args = parser.parse_args()
    asyncio.run(main(args.owner, args.collection))
