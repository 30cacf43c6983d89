"""Scheduled jobs: timer handlers, in-process scheduler and cron entry point."""
