# config_local.example.py

"""
Example local overrides.

Usage:
  1) Copy this file to `config_local.py`
  2) Adjust values for your machine
  3) Never commit `config_local.py` (it is gitignored)

Prefer `.env`. This file should contain only safe overrides.
"""

# Example: run headless (reminders + maintenance only)
# CONSOLE_ENABLED = False

# Example: keep completed tasks for two weeks
# RETENTION_DAYS = 14

# Example: override local paths (prefer env vars; only do this if you really need it)
# from pathlib import Path
# DATA_DIR = Path(".local/tasklife")
