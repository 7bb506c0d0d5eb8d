"""Fixed pipeline constants. These are part of the ranking and policy contract, not settings."""

# Query parameter bounds
TOP_K_MIN = 1
TOP_K_MAX = 20
SCORE_THRESHOLD_MIN = 0.0
SCORE_THRESHOLD_MAX = 1.0

# Candidate retrieval: topK * multiplier when reranking, never more than the cap
RERANK_OVERFETCH_MULTIPLIER = 2
MAX_CANDIDATES = 20

# Score fusion: fused = w_rel * relevance + w_sim * similarity
FUSION_RELEVANCE_WEIGHT = 0.7
FUSION_SIMILARITY_WEIGHT = 0.3

# Relevance scorer
NEUTRAL_RELEVANCE_SCORE = 0.5
RELEVANCE_SCALE_MAX = 10.0
PASSAGE_CHAR_CAP = 500
LEXICAL_POSITIVE_CUES = ("relevant", "good", "yes")
LEXICAL_POSITIVE_SCORE = 7.0
LEXICAL_NEGATIVE_SCORE = 3.0
SCORER_MAX_TOKENS = 10
SCORER_TEMPERATURE = 0.1

# Query expansion
MIN_KEYWORD_LENGTH = 3
MIN_KEYWORDS_FOR_EXPANSION = 2
STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "by", "is", "are", "was", "were", "be", "been", "have", "has", "had", "do", "does",
        "did", "will", "would", "could", "should", "may", "might", "can", "what", "how",
        "when", "where", "why", "who", "which", "this", "that", "these", "those",
    }
)

# Context assembly
CONTEXT_SEPARATOR = "\n\n"

# Collections must be in this status before they can be queried
COLLECTION_READY_STATUS = "ready"

NO_CONTEXT_ANSWER = (
    "I couldn't find relevant information in your knowledge base to answer this question. "
    "Please try rephrasing your question or check if the content has been properly uploaded."
)

# Log preview lengths
QUESTION_PREVIEW_CHARS = 200
CHUNK_PREVIEW_CHARS = 100
ANSWER_PREVIEW_CHARS = 300
RERANK_LOG_TOP_N = 3
