"""Monitoring: module database health diagnostics."""
