"""Shared pydantic base of identities and run configuration."""

from pydantic import BaseModel, ConfigDict


class Model(BaseModel):
    """Immutable value object that rejects fields it does not declare.

    Unknown keys in a configuration file are validation errors.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
