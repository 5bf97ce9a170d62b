"""Configuration classes for ezdom parsing.

This module provides configuration objects for the character, decoding and
document layers, enabling control over encoding handling, entity expansion
and error reporting.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

_COMPONENTS = ("character", "decoder")


@dataclass
class CharacterConfig:
    """Configuration for the character processing layer."""

    # Encoding detection settings
    detect_bom: bool = True
    transcode_utf16: bool = True
    fallback_encoding: Optional[str] = "latin-1"

    # Input limits
    max_input_size_bytes: Optional[int] = None

    def __post_init__(self) -> None:
        """Validate character configuration."""
        if self.max_input_size_bytes is not None and self.max_input_size_bytes <= 0:
            raise ValueError("max_input_size_bytes must be > 0 or None")
        if self.fallback_encoding is not None:
            if not self.fallback_encoding.strip():
                raise ValueError("fallback_encoding must be a codec name or None")
            try:
                "".encode(self.fallback_encoding)
            except LookupError as e:
                raise ValueError(
                    f"unknown fallback_encoding: {self.fallback_encoding}"
                ) from e


@dataclass
class DecoderConfig:
    """Configuration for entity and character reference decoding."""

    max_entity_expansions: int = 10000
    normalize_undeclared_attributes: bool = True

    def __post_init__(self) -> None:
        """Validate decoder configuration."""
        if self.max_entity_expansions < 0:
            raise ValueError("max_entity_expansions must be >= 0")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


@dataclass(frozen=True)
class ParserConfig:
    """Configuration for all ezdom parser components.

    Instances are immutable; use :meth:`override` to derive a modified copy.
    """

    # Component configurations
    character: CharacterConfig = field(default_factory=CharacterConfig)
    decoder: DecoderConfig = field(default_factory=DecoderConfig)

    # Document settings
    error_capacity: int = 128
    correlation_id: Optional[str] = None

    # Metadata
    name: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete parser configuration."""
        try:
            self.character.__post_init__()
            self.decoder.__post_init__()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

        if self.error_capacity < 16:
            raise ConfigValidationError(
                "error_capacity must be >= 16",
                field_name="error_capacity",
                suggestions=["Use the default capacity of 128 characters"],
            )

    def override(self, **kwargs: Any) -> "ParserConfig":
        """Create a new configuration with specific overrides.

        Args:
            **kwargs: Configuration fields to override. Nested fields use
                double-underscore notation.

        Returns:
            New ParserConfig instance with overrides applied

        Example:
            >>> config = ParserConfig()
            >>> new_config = config.override(
            ...     character__fallback_encoding=None,
            ...     decoder__max_entity_expansions=100,
            ... )
        """
        nested_overrides: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration section: {component}",
                        field_name=key,
                        suggestions=list(_COMPONENTS),
                    )
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                nested_overrides[key] = value

        new_fields: Dict[str, Any] = {}
        try:
            for component in _COMPONENTS:
                current = getattr(self, component)
                if component in nested_overrides:
                    new_fields[component] = replace(
                        current, **nested_overrides.pop(component)
                    )
            new_fields.update(nested_overrides)
            return replace(self, **new_fields)
        except TypeError as e:
            raise ConfigValidationError(f"Invalid override: {e}") from e
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary format."""
        def _dataclass_to_dict(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {
                    name: _dataclass_to_dict(getattr(obj, name))
                    for name in obj.__dataclass_fields__
                }
            return obj

        result = _dataclass_to_dict(self)
        if not isinstance(result, dict):
            raise ConfigValidationError("Configuration serialization failed")
        return result

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParserConfig":
        """Create configuration from dictionary.

        Args:
            data: Dictionary containing configuration data; unknown keys are
                rejected

        Returns:
            ParserConfig instance created from dictionary
        """
        sections = {"character": CharacterConfig, "decoder": DecoderConfig}
        values: Dict[str, Any] = {}
        for key, value in data.items():
            if key in sections:
                if not isinstance(value, dict):
                    raise ConfigValidationError(
                        f"Section {key} must be an object", field_name=key
                    )
                try:
                    values[key] = sections[key](**value)
                except TypeError as e:
                    raise ConfigValidationError(str(e), field_name=key) from e
                except ValueError as e:
                    raise ConfigValidationError(str(e), field_name=key) from e
            elif key in cls.__dataclass_fields__:
                values[key] = value
            else:
                raise ConfigValidationError(
                    f"Unknown configuration field: {key}", field_name=key
                )
        return cls(**values)

    @classmethod
    def from_json(cls, json_str: str) -> "ParserConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration JSON must be an object")
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def default(cls) -> "ParserConfig":
        """Create the default configuration."""
        return cls()

    @classmethod
    def strict(cls) -> "ParserConfig":
        """Create configuration preset that refuses undecodable input.

        Non UTF-8 input without a BOM is decoded with replacement characters
        instead of a legacy fallback codec, and entity expansion is limited
        to a small budget.
        """
        return cls(
            character=CharacterConfig(fallback_encoding=None),
            decoder=DecoderConfig(max_entity_expansions=256),
            name="strict",
        )
