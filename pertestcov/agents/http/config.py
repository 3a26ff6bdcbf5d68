"""Configuration for the HTTP coverage agent."""

from pydantic import BaseModel, SecretStr


class HttpAgentConfig(BaseModel):
    """Configuration for an agent exposing dump and reset endpoints over HTTP."""

    base_url: str = "http://localhost:8888"
    dump_path: str = "/coverage/object"
    reset_path: str = "/coverage/reset"
    token: SecretStr | None = None
    file_extension: str = "json"
