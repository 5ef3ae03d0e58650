"""Configuration of the mlintegrity components.

Each component ("verifier", "logging") reads one INI file. The first of
/etc/mlintegrity/<component>.conf and /usr/etc/mlintegrity/<component>.conf
that exists is used, then the snippets in <component>.conf.d under
/usr/etc/mlintegrity and /etc/mlintegrity are applied on top of it, in that
order and sorted by name.

MLINTEGRITY_<COMPONENT>_CONFIG names a file that replaces all of the above.
A single option can be set with MLINTEGRITY_<COMPONENT>[_<SECTION>]_<OPTION>.
"""

import functools
import logging
import os
from configparser import RawConfigParser
from typing import List, Optional

logger = logging.getLogger("mlintegrity.config")

COMPONENTS = ("verifier", "logging")

# Highest priority first
CONFIG_DIRS = ["/etc/mlintegrity", "/usr/etc/mlintegrity"]


def _snippets(component: str) -> List[str]:
    snippets = []
    for config_dir in reversed(CONFIG_DIRS):
        snippets_dir = os.path.join(config_dir, f"{component}.conf.d")
        if os.path.isdir(snippets_dir):
            snippets.extend(
                sorted(
                    os.path.join(snippets_dir, f)
                    for f in os.listdir(snippets_dir)
                    if os.path.isfile(os.path.join(snippets_dir, f))
                )
            )
    return snippets


@functools.lru_cache(maxsize=None)
def get_config(component: str) -> RawConfigParser:
    """Return the configuration of a component, read once and cached

    A component without configuration files gets an empty configuration, so
    every option takes its default value.
    """
    if component not in COMPONENTS:
        raise ValueError(f"Unknown configuration component '{component}'")

    # RawConfigParser, the logging configuration contains %-style formats
    parser = RawConfigParser()

    env_file = os.environ.get(f"MLINTEGRITY_{component.upper()}_CONFIG")
    if env_file:
        if parser.read(env_file):
            logger.info("Reading %s configuration from %s", component, env_file)
            return parser
        logger.warning("Configuration file %s for %s not found, using installed configuration", env_file, component)

    base = next(
        (path for path in (os.path.join(d, f"{component}.conf") for d in CONFIG_DIRS) if os.path.isfile(path)),
        None,
    )
    if base is None:
        logger.debug("No configuration file for %s, using defaults", component)
        return parser

    parser.read(base)
    logger.info("Reading %s configuration from %s", component, base)
    for snippet in _snippets(component):
        if not parser.read(snippet):
            logger.error("Configuration snippet %s exists but could not be read", snippet)

    return parser


def _lookup(component: str, option: str, section: Optional[str]) -> Optional[str]:
    parts = ["MLINTEGRITY", component, section, option]
    env_name = "_".join(p.upper() for p in parts if p)
    value = os.environ.get(env_name)
    if value is not None:
        logger.info("Option %s of %s.conf set by environment variable %s", option, component, env_name)
        return value

    return get_config(component).get(section or component, option, fallback=None)


def get(component: str, option: str, section: Optional[str] = None, fallback: str = "") -> str:
    """Return an option as a string, without surrounding quotes and spaces"""
    value = _lookup(component, option, section)
    if value is None:
        return fallback
    return value.strip('" ')


def getint(component: str, option: str, section: Optional[str] = None, fallback: int = -1) -> int:
    value = _lookup(component, option, section)
    if value is None:
        return fallback
    return int(value)
