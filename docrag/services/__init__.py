"""Business logic: chunking, similarity ranking, ingestion and retrieval."""
