import os
import json
from pathlib import Path
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    """Application settings and configuration"""

    def __init__(self):
        self.elasticsearch_url = os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")
        self.elasticsearch_username = os.getenv("ELASTICSEARCH_USERNAME")
        self.elasticsearch_password = os.getenv("ELASTICSEARCH_PASSWORD")
        self.elasticsearch_timeout = float(os.getenv("ELASTICSEARCH_TIMEOUT", "30"))

        # Cache settings, an unset REDIS_URL disables caching
        self.redis_url = os.getenv("REDIS_URL")
        self.redis_key_prefix = os.getenv("REDIS_KEY_PREFIX", "")
        self.cache_ttl_seconds = int(os.getenv("CACHE_TTL_SECONDS", "300"))

        # Search instance
        self.instance_name = os.getenv("INSTANCE_NAME", "default")
        self.search_config_path = os.getenv("SEARCH_CONFIG_PATH")

        # Analytics sinks
        self.indexer_url = os.getenv("INDEXER_URL", f"http://localhost:3000/{self.instance_name}/indexer/api")
        self.beacon_url = os.getenv("BEACON_URL")
        self.sink_timeout = float(os.getenv("SINK_TIMEOUT", "60"))

        # API settings
        self.api_title = "Search Gateway API"
        self.api_description = "Query compilation, caching and response shaping in front of Elasticsearch"
        self.api_version = "1.0.0"

        self.debug = _env_bool("DEBUG")
        self.log_level = os.getenv("LOG_LEVEL", "DEBUG" if self.debug else "INFO")

        # Load declarative search config
        self.search_config = self._load_search_config()

    def _load_search_config(self) -> Dict[str, Any]:
        """Load raw search config from the JSON file named by SEARCH_CONFIG_PATH"""
        if not self.search_config_path:
            return {}
        config_path = Path(self.search_config_path)
        with open(config_path, "r", encoding="utf-8") as f:
            return json.load(f)

    @property
    def elasticsearch_auth(self) -> Optional[tuple]:
        """Get Elasticsearch authentication tuple"""
        if self.elasticsearch_username and self.elasticsearch_password:
            return (self.elasticsearch_username, self.elasticsearch_password)
        return None

    @property
    def cache_key_prefix(self) -> str:
        """Namespace prepended to every cache key"""
        return f"{self.redis_key_prefix}/" if self.redis_key_prefix else ""


# Global settings instance
settings = Settings()
