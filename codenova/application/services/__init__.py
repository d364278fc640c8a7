"""Application services: chat and agent orchestration."""
