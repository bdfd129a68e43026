#!/usr/bin/env python3
"""
Settings loader for jxr static site generator.
Supports configuration from jxr.yml, jxr.yaml, or jxr.json files in the source root.
"""

import os
import json
import logging
import yaml
from typing import Dict, Any, Optional

from .errors import DecodeError, Reason

logger = logging.getLogger('jxr')


class JxrSettings:
    """Load and manage jxr configuration settings."""

    # Default configuration
    DEFAULT_SETTINGS = {
        'output': '.',
        'template_extension': '.jinja',
        'listing_template': 'listing.jinja',
        'default_layout': 'default',
        'root_layout': 'layout',
        'defaults_file': 'defaults.yml',
        'log_file': None,
    }

    # Config file names to look for (in order of preference)
    CONFIG_FILES = ['jxr.yml', 'jxr.yaml', 'jxr.json']

    # Path settings resolved against the directory holding the config file
    PATH_SETTINGS = ['output', 'log_file']

    def __init__(self, config_dir: str = None):
        """
        Initialize settings loader.

        Args:
            config_dir: Directory to look for config files. Defaults to current directory.
        """
        self.config_dir = config_dir or os.getcwd()
        self.settings = self.DEFAULT_SETTINGS.copy()
        self.config_file_path = None

    def load_settings(self) -> Dict[str, Any]:
        """
        Load settings from configuration file if it exists.

        Returns:
            Dictionary of configuration settings
        """
        config_file = self._find_config_file()

        if config_file:
            self.config_file_path = config_file
            loaded_settings = self._load_config_file(config_file)
            if loaded_settings:
                # Merge with defaults, giving preference to loaded settings
                self.settings.update(loaded_settings)
            logger.debug(f"Loaded configuration from: {config_file}")

        return self.settings.copy()

    def _find_config_file(self) -> Optional[str]:
        """
        Find the first available configuration file.

        Returns:
            Path to config file or None if not found
        """
        for filename in self.CONFIG_FILES:
            config_path = os.path.join(self.config_dir, filename)
            if os.path.exists(config_path):
                return config_path
        return None

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """
        Load configuration from a file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Dictionary of configuration settings
        """
        file_ext = os.path.splitext(config_path)[1].lower()
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                if file_ext in ['.yml', '.yaml']:
                    data = yaml.safe_load(f) or {}
                else:
                    data = json.load(f) or {}
        except (IOError, OSError, UnicodeDecodeError) as e:
            raise DecodeError("Error reading configuration file", config_path, Reason.SETTINGS_INVALID) from e
        except yaml.YAMLError as e:
            raise DecodeError("Invalid YAML in configuration file", config_path, Reason.SETTINGS_INVALID) from e
        except json.JSONDecodeError as e:
            raise DecodeError("Invalid JSON in configuration file", config_path, Reason.SETTINGS_INVALID) from e

        if not isinstance(data, dict):
            raise DecodeError("Configuration file must contain a mapping", config_path, Reason.SETTINGS_INVALID)
        unknown = set(data) - set(self.DEFAULT_SETTINGS)
        if unknown:
            logger.warning(f"Ignoring unknown settings in {config_path}: {', '.join(sorted(unknown))}")
        settings = {key: value for key, value in data.items() if key in self.DEFAULT_SETTINGS}
        for key in self.PATH_SETTINGS:
            value = settings.get(key)
            if isinstance(value, str) and not os.path.isabs(os.path.expanduser(value)):
                settings[key] = os.path.join(self.config_dir, value)
        return settings

    def merge_with_args(self, args_dict: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge configuration settings with command-line arguments.
        Command-line arguments take precedence over config file settings.

        Args:
            args_dict: Dictionary of command-line arguments

        Returns:
            Merged configuration dictionary
        """
        merged = self.settings.copy()

        # Override with non-None command line arguments
        for key, value in args_dict.items():
            if value is not None:
                merged[key] = value

        return merged
