"""
Background Jobs for Compliance Alerts.

This module contains scheduled jobs:
- reminder_cron: Daily due-date reminders for open client actions
"""

from .reminder_cron import run_reminder_job

__all__ = ["run_reminder_job"]
