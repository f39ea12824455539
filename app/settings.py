import os

db_url = os.environ.get("DB_URL", "sqlite://:memory:")
users_ms_url = os.environ.get("USERS_MS_URL", "http://localhost:8000")
REDIS_URL = os.environ.get("REDIS_URL", "redis://localhost:6379/0")

log_level = os.environ.get("LOG_LEVEL", "INFO")
generate_schemas = os.environ.get("GENERATE_SCHEMAS", "true").lower() == "true"

proposal_validity_days = int(os.environ.get("PROPOSAL_VALIDITY_DAYS", "30"))
owner_cache_ttl = int(os.environ.get("OWNER_CACHE_TTL", "300"))
