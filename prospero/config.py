"""
Connection configuration.

Connection parameters are looked up in this order: explicit
arguments, PROSPERO_* environment variables, a config file.

A config file is a JSON (or YAML, if PyYAML is installed) dict of
sections, each section a dict of caldav_url, caldav_username,
caldav_password and caldav_timeout.  A section may "inherits" another
section, a meta-section may "contains" a list of sections.
"""

import json
import logging
import os
from fnmatch import fnmatch
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

log = logging.getLogger("prospero")

CONFIG_KEYS = ("url", "username", "password", "timeout")


def expand_config_section(config, section="default", blacklist=None) -> List[str]:
    """
    In the "normal" case, will return [ section ]

    We allow:

    * * includes all sections in config file
    * "Meta"-sections in the config file with the keyword "contains" followed by a list of section names
    * Recursive "meta"-sections
    * Glob patterns (work_* for all sections starting with work_)
    """
    if section == "*":
        return [x for x in config if not config[x].get("disable", False)]

    ## not a glob pattern
    if set(section).isdisjoint(set("[*?")):
        if "contains" in config.get(section, {}):
            results: List[str] = []
            if not blacklist:
                blacklist = set()
            blacklist.add(section)
            for subsection in config[section]["contains"]:
                if subsection not in results and subsection not in blacklist:
                    for recursivesubsection in expand_config_section(
                        config, subsection, blacklist
                    ):
                        if recursivesubsection not in results:
                            results.append(recursivesubsection)
            return results
        if config.get(section, {}).get("disable", False):
            return []
        return [section]

    ## section name is a glob pattern
    results = []
    for s in config:
        if fnmatch(s, section):
            for expanded in expand_config_section(config, s):
                if expanded not in results:
                    results.append(expanded)
    return results


def config_section(config, section="default") -> Dict[str, Any]:
    if section in config and "inherits" in config[section]:
        ret = config_section(config, config[section]["inherits"])
    else:
        ret = {}
    if section in config:
        ret.update(config[section])
    return ret


def read_config(fn: Optional[str]) -> Optional[Dict[str, Any]]:
    if not fn:
        cfgdir = f"{os.environ.get('HOME', '/')}/.config"
        for config_file in (
            f"{cfgdir}/prospero/calendar.conf",
            f"{cfgdir}/calendar.conf",
            "/etc/prospero/calendar.conf",
        ):
            cfg = read_config(config_file)
            if cfg:
                return cfg
        return None

    try:
        with open(fn, "rb") as config_file:
            try:
                return json.load(config_file)
            except json.decoder.JSONDecodeError:
                pass
        ## Late import, pyyaml is not in the requirements
        try:
            import yaml
        except ImportError:
            log.error(
                f"config file {fn} exists but is not valid json, and pyyaml is not installed."
            )
            return None
        with open(fn, "rb") as config_file:
            try:
                return yaml.load(config_file, yaml.SafeLoader)
            except yaml.YAMLError:
                log.error(
                    f"config file {fn} exists but is neither valid json nor yaml.  Check the syntax."
                )
    except FileNotFoundError:
        log.debug(f"no config file found at {fn}")
    return None


def get_connection_params(
    config_file: Optional[str] = None,
    config_section_name: str = "default",
    environment: bool = True,
    **explicit: Any,
) -> Dict[str, Any]:
    """
    Returns a dict with (some of) the keys url, username, password,
    timeout.  Explicit non-None arguments win over the environment,
    and the environment wins over the config file.
    """
    params: Dict[str, Any] = {}

    cfg = read_config(config_file)
    if cfg:
        section = config_section(cfg, config_section_name)
        for key in CONFIG_KEYS:
            if f"caldav_{key}" in section:
                params[key] = section[f"caldav_{key}"]

    if environment:
        for key in CONFIG_KEYS:
            value = os.environ.get(f"PROSPERO_{key.upper()}")
            if value:
                params[key] = value

    for key in CONFIG_KEYS:
        if explicit.get(key) is not None:
            params[key] = explicit[key]

    if params.get("timeout") is not None:
        params["timeout"] = float(params["timeout"])
    return params
