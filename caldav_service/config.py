"""
Connection parameters may come from a config file, from environment
variables and from the caller.  The caller wins over the environment,
the environment wins over the config file.

The config file is JSON (or YAML, if pyyaml is installed) with one
section per server:

    {
        "default": {"url": "https://cloud.example.com/remote.php/dav/",
                    "username": "alice", "password": "secret"},
        "public": {"inherits": "default", "username": null, "password": null}
    }
"""
import json
import logging
import os
from typing import Any, Dict, Optional

log = logging.getLogger("caldav_service")

CONFIG_LOCATIONS = (
    "{cfgdir}/caldav-service/config.json",
    "{cfgdir}/caldav-service/config.yaml",
    "/etc/caldav-service/config.json",
)

## environment variable -> connection parameter
ENVIRONMENT = {
    "CALDAV_SERVICE_URL": "url",
    "CALDAV_SERVICE_USERNAME": "username",
    "CALDAV_SERVICE_PASSWORD": "password",
    "CALDAV_SERVICE_REQUEST_TOKEN": "request_token",
}

## parameters ConnectionManager (and AsyncDAVClient) accept
CONNECTION_KEYS = {
    "url",
    "request_token",
    "webcal_caching",
    "username",
    "password",
    "auth_type",
    "timeout",
    "ssl_verify_cert",
    "headers",
    "huge_tree",
}


def config_section(config: Dict[str, Any], section: str = "default") -> Dict[str, Any]:
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    ret.pop("inherits", None)
    return ret


def read_config(fn: Optional[str]) -> Dict[str, Any]:
    """
    Read the config file fn, or the first config file found in the
    default locations if fn is not given.  A missing or broken file
    gives an empty config.
    """
    if not fn:
        cfgdir = os.path.join(os.environ.get("HOME", "/"), ".config")
        for config_file in CONFIG_LOCATIONS:
            cfg = read_config(config_file.format(cfgdir=cfgdir))
            if cfg:
                return cfg
        return {}

    try:
        try:
            with open(fn, "rb") as config_file:
                return json.load(config_file)
        except json.decoder.JSONDecodeError:
            ## Late import, yaml is an optional dependency
            try:
                import yaml
            except ImportError:
                log.error(
                    f"config file {fn} exists but is not valid json, and pyyaml is not installed."
                )
                return {}
            try:
                with open(fn, "rb") as config_file:
                    return yaml.safe_load(config_file) or {}
            except yaml.YAMLError:
                log.error(
                    f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                )
    except FileNotFoundError:
        log.debug(f"no config file {fn}")
    except OSError:
        log.error(f"config file {fn} could not be read.  It will be ignored", exc_info=True)
    return {}


def get_connection_params(
    config_file: Optional[str] = None, section: str = "default", **overrides: Any
) -> Dict[str, Any]:
    """
    The connection parameters for ConnectionManager, merged from the
    config file section, the environment and the overrides.
    """
    params = config_section(read_config(config_file), section)
    for var, key in ENVIRONMENT.items():
        if os.environ.get(var):
            params[key] = os.environ[var]
    params.update({k: v for k, v in overrides.items() if v is not None})

    unknown = set(params) - CONNECTION_KEYS
    if unknown:
        log.warning(f"ignoring unknown connection parameters: {sorted(unknown)}")
    return {k: v for k, v in params.items() if k in CONNECTION_KEYS and v is not None}
