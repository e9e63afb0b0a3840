# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use .env (local, gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "TASKSYNC_APP_NAME": "App display name (default: tasksync).",
    "TASKSYNC_LOG_LEVEL": "Console logging level (default: INFO).",
    # Paths (gitignored)
    "TASKSYNC_DATA_DIR": "Local data directory (default: .local/tasksync).",
    "TASKSYNC_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/tasks.sqlite3).",
    # HTTP connector
    "TASKSYNC_HTTP_ENABLED": "Serve the JSON API (true/false, default: true).",
    "TASKSYNC_HTTP_HOST": "Bind address (default: 127.0.0.1).",
    "TASKSYNC_HTTP_PORT": "Bind port (default: $PORT or 4000).",
    "TASKSYNC_CORS_ORIGIN": "Allowed CORS origins, comma-separated (default: *).",
    # Console connector
    "TASKSYNC_CONSOLE_ENABLED": "Run an interactive console session (true/false, default: false).",
    "TASKSYNC_CONSOLE_TOKEN": "Bearer token the console session signs in with.",
    # Identity provider
    "TASKSYNC_AUTH_PROVIDER": "'supabase' or 'static' (default: supabase when a URL is set).",
    "TASKSYNC_SUPABASE_URL": "Auth server base URL (SUPABASE_URL also accepted).",
    "TASKSYNC_SUPABASE_SERVICE_ROLE_KEY": "Service key sent as 'apikey' (SUPABASE_SERVICE_ROLE_KEY also accepted).",
    "TASKSYNC_AUTH_TIMEOUT_SECONDS": "Provider request timeout (default: 5).",
    "TASKSYNC_STATIC_TOKENS": "Static provider table, e.g. 'tok-alice=alice,tok-bob=bob'.",
    # Realtime
    "TASKSYNC_BUS_QUEUE_SIZE": "Max pending notifications per session before coalescing (default: 64).",
}
