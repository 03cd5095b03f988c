"""Business logic services: job storage, orchestration and pipeline stages."""
