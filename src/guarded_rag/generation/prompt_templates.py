"""All prompt templates for the pipeline."""

RELEVANCE_SCORING_SYSTEM = (
    "You are a relevance scorer. Rate how well the context answers the query on a scale of 0-10. "
    "Respond with only a number."
)

RELEVANCE_SCORING_PROMPT = """Query: {question}

Context: {passage}

How relevant is this context to answering the query? Score 0-10:"""

ANSWER_GENERATION_SYSTEM = """You are a helpful assistant that answers questions using ONLY the provided context from the user's knowledge base.
Rules:
- If the context doesn't contain enough information, say so clearly.
- Never make up information not present in the context.
- Be concise and direct."""

ANSWER_GENERATION_PROMPT = """Context:
{context}

Question: {question}

Answer the question based on the context above."""


def truncate_passage(passage: str, max_chars: int) -> str:
    """Cap passage length to bound prompt size."""
    if len(passage) <= max_chars:
        return passage
    return passage[:max_chars] + "..."
