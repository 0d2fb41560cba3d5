"""Common Pydantic models shared across services."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HealthStatus(str, Enum):
    """Health status enum."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class MongoDBConfig(BaseModel):
    """MongoDB connection configuration."""

    connection_string: str = Field(..., description="MongoDB connection string")
    database: str = Field(..., description="Database name")
    collection: str = Field(..., description="Collection name")
    server_selection_timeout_ms: int = Field(
        5000, description="Server selection timeout in milliseconds", gt=0
    )
    auth_source: str = Field("admin", description="Authentication database")
    username: Optional[str] = Field(None, description="Root username, when not in the URL")
    password: Optional[str] = Field(None, description="Root password, when not in the URL")

    model_config = ConfigDict(frozen=True)

    @field_validator("connection_string")
    @classmethod
    def validate_connection_string(cls, v: str) -> str:
        """Validate the connection string uses a MongoDB scheme."""
        if not v.startswith(("mongodb://", "mongodb+srv://")):
            raise ValueError("connection_string must start with mongodb:// or mongodb+srv://")
        return v

    def client_kwargs(self) -> Dict[str, object]:
        """Keyword arguments for a pymongo client built from this config."""
        kwargs: Dict[str, object] = {
            "serverSelectionTimeoutMS": self.server_selection_timeout_ms,
        }
        if self.username:
            kwargs["username"] = self.username
            kwargs["password"] = self.password
            kwargs["authSource"] = self.auth_source
        return kwargs


class ServiceInfo(BaseModel):
    """Service information model."""

    service_name: str = Field(..., description="Service name")
    version: str = Field(..., description="Service version")
    status: HealthStatus = Field(..., description="Service health status")
    uptime_seconds: float = Field(..., description="Service uptime in seconds")
    dependencies: Dict[str, HealthStatus] = Field(
        default_factory=dict, description="Dependency health status"
    )

    model_config = ConfigDict(use_enum_values=True)
