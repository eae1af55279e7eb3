"""
Configuration management using Pydantic Settings
"""
import json
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional

from dotenv import load_dotenv
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# config.py is at: backend/boost_guard/core/config.py
_current_file = Path(__file__).resolve()
_backend_dir = _current_file.parent.parent.parent
_project_root = _backend_dir.parent
ENV_FILE = _project_root / ".env"
# Fallback: backend/.env
if not ENV_FILE.exists():
    ENV_FILE = _backend_dir / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE, override=False)

LOG_FORMATS = ("json", "text")
REGISTRY_BACKENDS = ("subgraph", "file")
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "boost-guard"
    app_env: str = Field(default="development", description="Application environment")
    api_host: str = Field(default="0.0.0.0", description="API host")
    api_port: int = Field(default=8080, ge=1, le=65535, description="API port")
    allowed_origins: str = Field(
        default="http://localhost:3000",
        description="Allowed CORS origins (comma-separated)"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' for structured logging, 'text' for plain text"
    )
    log_module_levels: Optional[str] = Field(
        default=None,
        description='Module-specific log levels (JSON string, e.g., {"boost_guard.services": "DEBUG"})'
    )
    log_sqlalchemy: bool = Field(default=False, description="Enable SQLAlchemy query logging")
    log_uvicorn_access: bool = Field(default=False, description="Enable Uvicorn access logging")
    log_file_enabled: bool = Field(default=False, description="Enable file logging")
    log_file_path: str = Field(
        default="logs/boost_guard.log",
        description="Path to log file (relative to project root)"
    )
    log_file_rotation: str = Field(
        default="midnight",
        description="Log file rotation: 'midnight' or 'W0'..'W6' (weekly)"
    )
    log_file_retention: int = Field(default=30, ge=1, description="Number of rotated log files to keep")
    log_sensitive_data: bool = Field(
        default=False,
        description="Disable masking of keys and secrets in logs - NOT RECOMMENDED"
    )

    # Database (claim ledger)
    database_url: str = Field(
        default="sqlite:///./boost_guard.db",
        description="SQLAlchemy database URL for the claim ledger"
    )
    database_pool_size: int = Field(default=10, ge=1, description="Database pool size")
    database_max_overflow: int = Field(default=5, ge=0, description="Database max overflow")

    # Collaborators
    registry_backend: str = Field(default="subgraph", description="Boost registry backend: 'subgraph' or 'file'")
    boosts_file: Optional[str] = Field(default=None, description="JSON file with boosts for the 'file' registry")
    subgraph_urls: str = Field(
        default="{}",
        description='Boost subgraph endpoints per chain (JSON string, e.g., {"11155111": "https://..."})'
    )
    hub_url: str = Field(default="https://hub.snapshot.org/graphql", description="Snapshot hub GraphQL endpoint")
    http_timeout_seconds: float = Field(default=10.0, gt=0, description="Timeout for collaborator HTTP calls")
    token_cache_size: int = Field(default=1024, ge=1, description="Maximum number of cached tokens")

    # Key custody
    guard_private_keys: str = Field(default="", description="Guard private keys (comma-separated hex)")
    private_key: Optional[str] = Field(default=None, description="Single guard private key (legacy PRIVATE_KEY)")

    # Signing
    eip712_domain_name: str = Field(default="boost", description="EIP-712 domain name")
    eip712_domain_version: str = Field(default="1", description="EIP-712 domain version")
    boost_contract_address: str = Field(
        default=ZERO_ADDRESS,
        description="Boost contract address used as EIP-712 verifyingContract"
    )

    # Ledger
    ledger_conflict_retries: int = Field(
        default=1,
        ge=0,
        le=5,
        description="Internal retries after a ledger write conflict"
    )

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in LOG_FORMATS:
            raise ValueError(f"log_format must be one of {LOG_FORMATS}")
        return v

    @field_validator("registry_backend")
    @classmethod
    def validate_registry_backend(cls, v: str) -> str:
        v = v.lower()
        if v not in REGISTRY_BACKENDS:
            raise ValueError(f"registry_backend must be one of {REGISTRY_BACKENDS}")
        return v

    @field_validator("subgraph_urls")
    @classmethod
    def validate_subgraph_urls(cls, v: str) -> str:
        try:
            parsed = json.loads(v or "{}")
        except json.JSONDecodeError as e:
            raise ValueError(f"subgraph_urls is not valid JSON: {e}")
        if not isinstance(parsed, dict):
            raise ValueError("subgraph_urls must be a JSON object")
        for chain_id in parsed:
            if not str(chain_id).isdigit() or int(chain_id) <= 0:
                raise ValueError(f"invalid chain id in subgraph_urls: {chain_id!r}")
        return v or "{}"

    @property
    def subgraph_url_map(self) -> Dict[int, str]:
        """Parse subgraph endpoints into {chain_id: url}"""
        return {int(k): str(url) for k, url in json.loads(self.subgraph_urls).items()}

    @property
    def guard_private_key_list(self) -> List[str]:
        """All configured guard keys, legacy PRIVATE_KEY included"""
        keys = [k.strip() for k in self.guard_private_keys.split(",") if k.strip()]
        if self.private_key and self.private_key.strip() not in keys:
            keys.append(self.private_key.strip())
        return keys

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE) if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True
    )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
