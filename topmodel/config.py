"""
ConfigDict for topmodel - per-model configuration.

A model reads its configuration from the ``model_config`` class
attribute. When a class does not define one, it inherits the nearest
base's configuration.

Example:
    from topmodel import Model, ConfigDict

    class Person(Model):
        model_config = ConfigDict(
            use_default_values=False,
            validate_assignment=True,
        )
        name: str
"""

from typing import Any, Literal, Optional, TypedDict


class ConfigDict(TypedDict, total=False):
    """Configuration dictionary for Model."""

    use_default_values: bool
    """If True, construction applies field default values. Default: True."""

    strict_specialization: bool
    """If True, specialize()/mutate() only accept strict subclasses. Default: False."""

    validate_assignment: bool
    """If True, assigning a field runs its validators and raises on failure. Default: False."""

    extra: Literal['ignore', 'forbid']
    """How to handle input keys that are not fields. Default: 'ignore'.
    - 'ignore': Extra keys are silently skipped.
    - 'forbid': Extra keys raise UndefinedFieldError.
    """


# Default configuration values
CONFIG_DEFAULTS: ConfigDict = {
    'use_default_values': True,
    'strict_specialization': False,
    'validate_assignment': False,
    'extra': 'ignore',
}


def get_config_value(config: Optional[ConfigDict], key: str, default: Any = None) -> Any:
    """Get a configuration value with fallback to defaults."""
    if config is None:
        return CONFIG_DEFAULTS.get(key, default)
    return config.get(key, CONFIG_DEFAULTS.get(key, default))


__all__ = ["ConfigDict", "CONFIG_DEFAULTS", "get_config_value"]
