"""Shared configuration constants for retrieval and response selection."""

DEFAULT_MAX_EXAMPLES = 5  # Candidates fetched per query.
DEFAULT_SIMILARITY_THRESHOLD = 0.75  # Below this an example is not relevant.
DIRECT_REUSE_THRESHOLD = 0.85  # Strictly above this the top answer is reused verbatim.
MAX_CONTEXT_EXAMPLES = 3  # Examples injected as generation context.
DEFAULT_RETRIEVAL_TIMEOUT_SECONDS = 15.0  # Avoid hanging embed/search calls.
QUERY_LOG_PREVIEW_CHARS = 50  # Query prefix kept in log context.
