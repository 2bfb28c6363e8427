"""Helpers for reaching the other instances of a fly.io app over its private
network. These are not part of the consistency protocol; they are useful for
e.g. proxying a request to a specific instance.
"""
from typing import Dict, Iterable, Optional, Union
from litetx.errors import ConfigurationError
from litetx.logging import LogConfig, abridge, log
import dns.asyncresolver
import dns.exception
import dns.resolver
import socket


def get_internal_instance_domain(
    instance: str, app_name: Optional[str], port: Union[str, int, None]
) -> str:
    """Returns the internal address for the given instance.

    Example:
        >>> get_internal_instance_domain("5ef6ddf5", "myapp", 8081)
        'http://5ef6ddf5.vm.myapp.internal:8081'

    Raises:
        ConfigurationError: if the app name or port is not set
    """
    if not app_name:
        raise ConfigurationError("FLY_APP_NAME")
    if port is None or port == "":
        raise ConfigurationError(
            "INTERNAL_PORT",
            "litetx: INTERNAL_PORT or PORT must be set or a port must be supplied",
        )
    # http and specify port for internal vm requests
    return f"http://{instance}.vm.{app_name}.internal:{port}"


def get_instances_query_name(app_name: str) -> str:
    """The DNS name whose TXT records list the instances of the app"""
    return f"vms.{app_name}.internal"


def parse_instances(txt_strings: Iterable[str]) -> Dict[str, str]:
    """Parses the TXT records of vms.<app>.internal, which look like
    "5ef6ddf5 maa,5ef6ddf6 sjc", into a mapping of instance id to region.
    Malformed entries are skipped.
    """
    instances: Dict[str, str] = {}
    for txt in txt_strings:
        for vm in txt.split(","):
            parts = vm.strip().split(" ")
            if len(parts) < 2 or not parts[0] or not parts[1]:
                continue
            instances[parts[0]] = parts[1]
    return instances


def get_all_instances(
    app_name: Optional[str],
    current_instance: Optional[str] = None,
    region: Optional[str] = None,
    *,
    log_config: Optional[LogConfig] = None,
) -> Dict[str, str]:
    """Gives a dict of instance ids mapped to the region where they're
    hosted, e.g., {"5ef6ddf5": "maa", "5ef6ddf6": "sjc"}

    Args:
        app_name (str, None): the fly.io app name. If not set, only the
            current instance is returned, in the region "local"
        current_instance (str, None): the identity of this process. If None,
            the hostname.
        region (str, None): the region of this process, used if the lookup
            fails
        log_config (LogConfig, None): how to log; None for the defaults
    """
    if current_instance is None:
        current_instance = socket.gethostname()
    if not app_name:
        return {current_instance: "local"}

    try:
        answer = dns.resolver.resolve(get_instances_query_name(app_name), "TXT")
    except dns.exception.DNSException as e:
        _log_lookup_failed(log_config, app_name, e)
        return {current_instance: region or "local"}

    return parse_instances(_txt_strings(answer))


async def get_all_instances_async(
    app_name: Optional[str],
    current_instance: Optional[str] = None,
    region: Optional[str] = None,
    *,
    log_config: Optional[LogConfig] = None,
) -> Dict[str, str]:
    """Just like get_all_instances except the lookup does not block the
    event loop.
    """
    if current_instance is None:
        current_instance = socket.gethostname()
    if not app_name:
        return {current_instance: "local"}

    try:
        answer = await dns.asyncresolver.resolve(
            get_instances_query_name(app_name), "TXT"
        )
    except dns.exception.DNSException as e:
        _log_lookup_failed(log_config, app_name, e)
        return {current_instance: region or "local"}

    return parse_instances(_txt_strings(answer))


def _txt_strings(answer: Iterable) -> Iterable[str]:
    for rdata in answer:
        for chunk in rdata.strings:
            yield chunk.decode("utf-8", errors="replace")


def _log_lookup_failed(
    log_config: Optional[LogConfig], app_name: str, error: Exception
) -> None:
    if log_config is None:
        log_config = LogConfig()

    log(
        log_config.instances_lookup_failed,
        lambda max_length: abridge(
            f"Error getting all instances of {app_name}: {error!r}", max_length
        ),
    )
