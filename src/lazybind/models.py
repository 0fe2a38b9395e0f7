"""Base Pydantic models for binding records and settings.

This module defines the foundational model classes used by all lazybind
records. It enforces immutability and strict schema validation so that
placeholders and slots cannot be altered once they are stored in a table.
"""

from pydantic import BaseModel, ConfigDict
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchemaModel(BaseModel):
    """Base immutable model for binding records.

    This class serves as the root for all Pydantic models representing
    placeholders, slots, origin metadata and policy documents.

    Design principles enforced by this model:
        - Immutability: records cannot be modified after creation.
          A slot changes state only by being replaced in its table.
        - Strict schema validation: unknown or extra fields are rejected
          to avoid silent errors caused by typos in policy documents.

    All lazybind models must inherit from this class.
    """

    model_config = ConfigDict(
        arbitrary_types_allowed=True,
        frozen=True,
        extra='forbid',
    )


class SettingsModel(BaseSettings):
    """Base immutable model for runtime settings.

    This class serves as the root for all settings models responsible for
    resolving runtime configuration (for example, environment variables
    or a policy file path provided by the embedding host).

    Design principles enforced by this model:
        - Immutability: resolved settings cannot be modified after creation.
        - Tolerant schema handling: unknown or extra fields are ignored.
          This allows the surrounding environment to contain unrelated
          variables without breaking configuration resolution.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        extra='ignore',
    )
