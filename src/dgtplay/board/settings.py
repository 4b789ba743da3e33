""" Handles config in the dgtplay.ini """

# This file is part of the dgtplay project
#
# Licensed under the GNU General Public License v3.0 or later.
# See LICENSE.md for details.

import configparser
import os
from typing import Dict, Final

CONFIG_ENV: Final[str] = "DGTPLAY_CONFIG_PATH"
DEFAULT_CONFIG_ENV: Final[str] = "DGTPLAY_DEFAULT_CONFIG_PATH"


class Settings:
    """Class handling dgtplay.ini with environment overrides for tests/dev."""

    configfile = os.environ.get(CONFIG_ENV, os.path.expanduser('~/.config/dgtplay/dgtplay.ini'))
    defconfigfile = os.environ.get(DEFAULT_CONFIG_ENV, os.path.join(os.path.dirname(__file__), 'defaults', 'dgtplay.ini'))

    @staticmethod
    def _parser():
        config = configparser.ConfigParser()
        config.optionxform = str  # Preserve case for engine names and UCI options
        return config

    @staticmethod
    def read(section, key, default = ''):
        """ Read a value from the key in the section """
        Settings.ensure_key_exists(section, key, default)
        config = Settings._parser()
        config.read(Settings.configfile)
        return config[section][key]

    @staticmethod
    def write(section, key, value, default = ''):
        """ Write a value to the key in the section """
        Settings.ensure_key_exists(section, key, default)
        config = Settings._parser()
        config.read(Settings.configfile)
        config.set(section, key, str(value))
        Settings.write_config(config)

    @staticmethod
    def ensure_key_exists(section, key, default = ''):
        """ Ensures that the key exists in dgtplay.ini """
        config = Settings._parser()
        config.read(Settings.configfile)
        if not config.has_section(section):
            config.add_section(section)
            Settings.write_config(config)
        if not config.has_option(section, key):
            # Take the value from the defaults file if we can
            defconfig = Settings._parser()
            defconfig.read(Settings.defconfigfile)
            value = ''
            if defconfig.has_section(section):
                if defconfig.has_option(section, key):
                    value = defconfig[section][key]
            if value == '':
                value = default
            config.set(section, key, value)
            Settings.write_config(config)

    @staticmethod
    def read_section(section) -> Dict[str, str]:
        """ Read every key of a section, defaults file first, user file on top """
        merged: Dict[str, str] = {}
        for path in (Settings.defconfigfile, Settings.configfile):
            config = Settings._parser()
            config.read(path)
            if config.has_section(section):
                merged.update(config.items(section))
        return merged

    @staticmethod
    def write_config(config):
        """ Writes the dgtplay.ini """
        config_dir = os.path.dirname(Settings.configfile)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)
        with open(Settings.configfile, 'w', encoding="utf-8") as f:
            config.write(f)


def load_str(section: str, key: str, default: str = "") -> str:
    """Load a string setting from dgtplay.ini."""
    return Settings.read(section, key, default)


def load_bool(section: str, key: str, default: bool = True) -> bool:
    """Load a boolean setting from dgtplay.ini.

    "false", "0" and the empty string read as False; anything else is True.
    """
    value = Settings.read(section, key, "true" if default else "false")
    if value.lower() in ("false", "0", ""):
        return False
    return True


def load_int(section: str, key: str, default: int = 0) -> int:
    """Load an integer setting, falling back to default on garbage."""
    value = Settings.read(section, key, str(default))
    try:
        return int(value)
    except ValueError:
        return default


def load_float(section: str, key: str, default: float = 0.0) -> float:
    """Load a float setting, falling back to default on garbage."""
    value = Settings.read(section, key, str(default))
    try:
        return float(value)
    except ValueError:
        return default
