"""Configuration for the JaCoCo agent."""

from pydantic import BaseModel, Field


class JaCoCoConfig(BaseModel):
    """Configuration for a JaCoCo agent running in tcpserver mode."""

    address: str = "localhost"
    port: int = Field(default=9999, ge=1, le=65535)
    file_extension: str = "exec"
