"""
Configuration management for RuntimeKit.
"""

from .inputs import INPUT_DEFAULTS, SetupInputs, load_inputs, load_yaml_config

__all__ = ["INPUT_DEFAULTS", "SetupInputs", "load_inputs", "load_yaml_config"]
