"""Configuration settings for the lab results service."""

import os


def get_postgres_uri():
    """Get PostgreSQL connection URI from environment variables."""
    host = os.environ.get("DB_HOST", "localhost")
    port = 5435 if host == "localhost" else 5432
    password = os.environ.get("DB_PASSWORD", "lab_results_pass")
    user = os.environ.get("DB_USER", "lab_results_user")
    db_name = os.environ.get("DB_NAME", "lab_results_db")
    return f"postgresql://{user}:{password}@{host}:{port}/{db_name}"


def get_redis_host_and_port():
    """Get Redis connection details from environment variables."""
    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", "6379"))
    return dict(host=host, port=port)


def get_cache_ttl_seconds():
    """Expiry for cached sample representations."""
    return int(os.environ.get("CACHE_TTL_SECONDS", "600"))


def get_alert_email():
    """Recipient of abnormal-result alerts (the lab's on-call doctor)."""
    return os.environ.get("LAB_ALERT_EMAIL", "oncall-doctor@lab.local")


def get_events_channel():
    """Redis pub/sub channel for published lifecycle events."""
    return os.environ.get("LAB_EVENTS_CHANNEL", "lab:samples")
