"""QA batch assessment service."""
