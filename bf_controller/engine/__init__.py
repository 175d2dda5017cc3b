"""Fleet orchestration engine."""
