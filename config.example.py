# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored); see .env.example for a template.

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "WORKSYNC_APP_NAME": "App display name (default: worksync).",
    "WORKSYNC_LOG_LEVEL": "Console logging level (default: INFO).",
    # Backends
    "WORKSYNC_REMOTE_BACKEND": "Remote document store: memory | firestore (default: memory).",
    "WORKSYNC_AUTH_BACKEND": "Identity provider: memory | firebase (default: memory).",
    # Firebase / Firestore
    "WORKSYNC_FIREBASE_PROJECT_ID": "Google Cloud project id (required for firestore).",
    "WORKSYNC_FIREBASE_API_KEY": "Web API key for the Identity Toolkit (required for firebase auth).",
    "WORKSYNC_FIRESTORE_DATABASE": "Firestore database id (default: (default)).",
    "WORKSYNC_AUTH_TIMEOUT_SECONDS": "HTTP timeout for auth calls (default: 15, min 1).",
    # Background sync
    "WORKSYNC_SYNC_INTERVAL_SECONDS": "Pull interval for the sync loop; 0 disables it (default: 60).",
    # Connectors
    "WORKSYNC_CONSOLE_ENABLED": "Enable console connector (true/false, default: true).",
    # Paths (gitignored)
    "WORKSYNC_DATA_DIR": "Local data directory (default: .local/worksync).",
    "WORKSYNC_CACHE_DB_PATH": "SQLite cache path (default: <data_dir>/cache.sqlite3).",
}
