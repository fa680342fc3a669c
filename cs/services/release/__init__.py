"""Version proposal and publish orchestration."""
