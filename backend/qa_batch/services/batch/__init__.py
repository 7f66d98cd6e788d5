"""QA batch assessment engine: job lifecycle, selection, AI scoring, progress."""
