# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Use:
- .env (local, gitignored)
- config_local.py (local safe overrides, gitignored)

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKLIFE_APP_NAME": "App display name (default: tasklife).",
    "TASKLIFE_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets INFO+.",
    # Front-end
    "TASKLIFE_CONSOLE_ENABLED": "Enable the console REPL (true/false, default: true).",
    "TASKLIFE_BADGE_ENABLED": "Compute the overdue+due-today badge during maintenance (default: true).",
    # Paths (gitignored)
    "TASKLIFE_DATA_DIR": "Local data directory, also holds tasklife.log (default: .local/tasklife).",
    "TASKLIFE_DB_PATH": "SQLite path for tasks and categories (default: <data_dir>/tasklife.sqlite3).",
    # Lifecycle tuning
    "TASKLIFE_RETENTION_DAYS": "Days a completed task is kept before auto-deletion (default: 7, min: 1).",
    "TASKLIFE_MAINTENANCE_INTERVAL_SECONDS": "Seconds between background maintenance ticks (default: 300).",
    "TASKLIFE_WRITE_BEHIND": "Persist from a background writer thread (true/false, default: true).",
}
