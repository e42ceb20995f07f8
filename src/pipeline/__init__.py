"""Factor scoring orchestration."""
