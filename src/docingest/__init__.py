"""docingest: PDF ingestion and chunking pipeline."""
