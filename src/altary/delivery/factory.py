# src/altary/delivery/factory.py
"""Factory functions for creating a transport from configuration.

This module provides the glue between AltarySettings and the runtime
transport instance. It handles:
1. Discovering transport classes via pluggy hooks
2. Instantiating and configuring the selected transport

Usage:
    from altary.delivery.factory import create_transport

    transport = create_transport(settings)
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

import pluggy
import structlog

from altary.contracts.errors import TransportConfigError
from altary.core.config import AltarySettings
from altary.delivery.hookspecs import PROJECT_NAME, AltaryTransportSpec
from altary.delivery.protocols import TransportProtocol
from altary.delivery.transports import BuiltinTransportsPlugin

logger = structlog.get_logger(__name__)


def _resolve_transport_name(transport_class: type[TransportProtocol]) -> str:
    """Resolve transport name from class metadata or a temporary instance.

    Raises:
        TransportConfigError: If the class resolves to an invalid name.
    """
    class_name = getattr(transport_class, "__name__", repr(transport_class))

    # Prefer class-level _name when provided to avoid unnecessary instantiation.
    class_dict = getattr(transport_class, "__dict__", {})
    if "_name" in class_dict:
        class_name_hint = class_dict["_name"]
        if type(class_name_hint) is str and class_name_hint != "":
            return class_name_hint
        raise TransportConfigError(
            class_name,
            f"Transport class attribute _name must be a non-empty string, got {class_name_hint!r}",
        )

    try:
        transport_instance = transport_class()
    except Exception as e:
        raise TransportConfigError(
            class_name,
            f"Failed to instantiate transport class during discovery: {e}",
        ) from e

    resolved_name = transport_instance.name
    if type(resolved_name) is not str or resolved_name == "":
        raise TransportConfigError(
            class_name,
            f"Transport name must be a non-empty string, got {resolved_name!r}",
        )
    return resolved_name


def discover_transports(transport_plugins: Iterable[Any] = ()) -> dict[str, type[TransportProtocol]]:
    """Discover transports via pluggy hooks.

    Registers the built-in transports plus any additional plugin objects,
    then calls ``altary_get_transports`` hooks to build the name -> class
    registry.

    Raises:
        TransportConfigError: If plugin registration fails, a hook returns
            something other than an iterable of classes, or duplicate
            transport names are discovered.
    """
    plugin_manager = pluggy.PluginManager(PROJECT_NAME)
    plugin_manager.add_hookspecs(AltaryTransportSpec)

    for plugin in [BuiltinTransportsPlugin(), *list(transport_plugins)]:
        try:
            plugin_manager.register(plugin)
            plugin_manager.check_pending()
        except (pluggy.PluginValidationError, ValueError) as e:
            # PluginValidationError: hook spec mismatch (wrong method names, etc.)
            # ValueError: duplicate plugin object or plugin name already registered
            if isinstance(e, pluggy.PluginValidationError):
                plugin_manager.unregister(plugin=plugin)
            raise TransportConfigError(
                "transport_plugins",
                f"Invalid transport plugin {type(plugin).__name__}: {e}",
            ) from e

    registry: dict[str, type[TransportProtocol]] = {}
    for hook_impl in plugin_manager.hook.altary_get_transports.get_hookimpls():
        plugin_name = type(hook_impl.plugin).__name__
        try:
            transports = hook_impl.function()
        except Exception as e:
            raise TransportConfigError(
                "transport_plugins",
                f"Transport plugin {plugin_name} failed in altary_get_transports: {e}",
            ) from e

        if transports is None or type(transports) in (str, bytes):
            raise TransportConfigError(
                "transport_plugins",
                f"altary_get_transports in plugin {plugin_name} returned {type(transports).__name__}; "
                "expected iterable of transport classes",
            )
        try:
            transport_iter = iter(transports)
        except TypeError as e:
            raise TransportConfigError(
                "transport_plugins",
                f"altary_get_transports in plugin {plugin_name} returned {type(transports).__name__}; "
                "expected iterable of transport classes",
            ) from e

        for transport_class in transport_iter:
            transport_name = _resolve_transport_name(transport_class)
            if transport_name in registry:
                existing = registry[transport_name].__name__
                raise TransportConfigError(
                    transport_name,
                    f"Duplicate transport name '{transport_name}' discovered: {existing} and {transport_class.__name__}",
                )
            registry[transport_name] = transport_class

    return registry


def create_transport(
    settings: AltarySettings,
    *,
    transport_plugins: Iterable[Any] = (),
) -> TransportProtocol:
    """Create and configure the transport named in settings.

    Raises:
        TransportConfigError: If discovery fails, the transport name is
            unknown, or the transport rejects its configuration.
    """
    registry = discover_transports(transport_plugins)
    name = settings.transport.name
    try:
        transport_class = registry[name]
    except KeyError:
        available = sorted(registry.keys())
        raise TransportConfigError(name, f"Unknown transport. Available transports: {available}") from None

    transport = transport_class()
    transport.configure(
        {
            **settings.transport.options,
            "endpoint": settings.endpoint,
            "api_key": settings.api_key,
        }
    )
    logger.debug(
        "transport_configured",
        transport=name,
        options_keys=sorted(settings.transport.options.keys()),
    )
    return transport
