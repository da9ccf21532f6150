# src/altary/capture/__init__.py
"""Capture and enrichment stages of the event pipeline.

Components:
- capture: ErrorCapture turns fault signals and exceptions into raw events
- levels: map_level() and severity_for_category()
- enrich: ContextEnricher fills derived fields
- context: RequestContext bound per request via ContextVar
- session: SessionIdentity and its stores
- useragent: parse_user_agent() heuristics
"""

from altary.capture.capture import ErrorCapture
from altary.capture.context import RequestContext, bind_request, current_request
from altary.capture.enrich import ContextEnricher, read_source_excerpt, resolve_client_ip
from altary.capture.levels import map_level, severity_for_category
from altary.capture.session import (
    CookieSessionStore,
    MemorySessionStore,
    SessionIdentity,
    SessionStore,
)
from altary.capture.useragent import UserAgentInfo, parse_user_agent

__all__ = [
    "ContextEnricher",
    "CookieSessionStore",
    "ErrorCapture",
    "MemorySessionStore",
    "RequestContext",
    "SessionIdentity",
    "SessionStore",
    "UserAgentInfo",
    "bind_request",
    "current_request",
    "map_level",
    "parse_user_agent",
    "read_source_excerpt",
    "resolve_client_ip",
    "severity_for_category",
]
