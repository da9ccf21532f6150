# src/altary/registrar.py
"""Installation of the client's fault hooks.

Two process-wide hook slots are wrapped:

- ``warnings.showwarning``: every Python warning becomes an error event
- ``sys.excepthook``: every uncaught exception becomes an exception event

Each wrapper captures first and then hands control to whatever hook was
installed before it, with the identical arguments, so the host's own
reporting keeps working. An ``atexit`` hook flushes the queue at
interpreter shutdown after probing for a last uncaught exception.

Installation state lives in the client's HandlerChain, not in module
globals, so registering the same client twice never stacks wrappers.
"""

from __future__ import annotations

import atexit
import sys
import threading
import warnings
from collections.abc import Callable
from dataclasses import dataclass, field
from types import TracebackType
from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from altary.client import Client

logger = structlog.get_logger(__name__)

Hook = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class HookSlot:
    """A replaceable process-wide hook.

    Attributes:
        name: Slot name for logging
        get: Returns the currently installed hook
        set: Installs a hook
        default: Hook restored when nothing was installed before ours
    """

    name: str
    get: Callable[[], Hook | None]
    set: Callable[[Hook | None], None]
    default: Hook | None = None


def _set_showwarning(hook: Hook | None) -> None:
    warnings.showwarning = hook  # type: ignore[assignment]


def _set_excepthook(hook: Hook | None) -> None:
    sys.excepthook = hook  # type: ignore[assignment]


def warning_slot() -> HookSlot:
    return HookSlot(
        name="showwarning",
        get=lambda: warnings.showwarning,
        set=_set_showwarning,
        default=getattr(warnings, "_showwarning_orig", None),
    )


def exception_slot() -> HookSlot:
    return HookSlot(
        name="excepthook",
        get=lambda: sys.excepthook,
        set=_set_excepthook,
        default=sys.__excepthook__,
    )


class ExitRegistry(Protocol):
    """The subset of the ``atexit`` module used here."""

    def register(self, func: Callable[[], Any]) -> Any: ...

    def unregister(self, func: Callable[[], Any]) -> None: ...


@dataclass
class HandlerChain:
    """Per-client hook installation state.

    ``previous_*`` hold the hook that was active when ours was installed
    (None if there was none). ``*_hook`` hold our installed wrapper so that
    unregister can tell whether it is still the active one.
    """

    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    warning_installed: bool = False
    exception_installed: bool = False
    exit_registered: bool = False
    previous_warning_hook: Hook | None = None
    previous_exception_hook: Hook | None = None
    warning_hook: Hook | None = None
    exception_hook: Hook | None = None
    exit_hook: Callable[[], None] | None = None


class HandlerRegistrar:
    """Installs and removes the client's warning, exception and exit hooks."""

    def __init__(
        self,
        client: Client,
        *,
        warning_hook_slot: HookSlot | None = None,
        exception_hook_slot: HookSlot | None = None,
        exit_registry: ExitRegistry | None = None,
    ) -> None:
        self._client = client
        self._chain = client.handler_chain
        self._warning_slot = warning_hook_slot or warning_slot()
        self._exception_slot = exception_hook_slot or exception_slot()
        self._exit_registry: ExitRegistry = exit_registry if exit_registry is not None else atexit
        # Re-entry guard: a warning raised while capturing must not recurse
        self._local = threading.local()

    @property
    def chain(self) -> HandlerChain:
        return self._chain

    def register(self) -> bool:
        """Install every hook not yet installed for this client.

        Returns:
            True if anything was installed, False if all hooks were already
            in place.
        """
        chain = self._chain
        with chain.lock:
            installed: list[str] = []

            if not chain.warning_installed:
                hook = self.handle_warning
                chain.previous_warning_hook = self._warning_slot.get()
                chain.warning_hook = hook
                self._warning_slot.set(hook)
                chain.warning_installed = True
                installed.append(self._warning_slot.name)

            if not chain.exception_installed:
                hook = self.handle_exception
                chain.previous_exception_hook = self._exception_slot.get()
                chain.exception_hook = hook
                self._exception_slot.set(hook)
                chain.exception_installed = True
                installed.append(self._exception_slot.name)

            if not chain.exit_registered:
                exit_hook = self.on_exit
                chain.exit_hook = exit_hook
                self._exit_registry.register(exit_hook)
                chain.exit_registered = True
                installed.append("atexit")

        if installed:
            logger.debug("Altary handlers registered", hooks=installed)
        return bool(installed)

    def unregister(self) -> None:
        """Remove this client's hooks.

        A slot is restored to its previous hook only while our wrapper is
        still the active one. When another hook was installed on top of
        ours, our wrapper stays in its chain and remains marked installed.
        """
        chain = self._chain
        with chain.lock:
            if chain.warning_installed and self._restore(
                self._warning_slot, chain.warning_hook, chain.previous_warning_hook
            ):
                chain.warning_installed = False
                chain.warning_hook = None
                chain.previous_warning_hook = None

            if chain.exception_installed and self._restore(
                self._exception_slot, chain.exception_hook, chain.previous_exception_hook
            ):
                chain.exception_installed = False
                chain.exception_hook = None
                chain.previous_exception_hook = None

            if chain.exit_registered and chain.exit_hook is not None:
                self._exit_registry.unregister(chain.exit_hook)
                chain.exit_registered = False
                chain.exit_hook = None

    @staticmethod
    def _restore(slot: HookSlot, ours: Hook | None, previous: Hook | None) -> bool:
        if slot.get() is not ours:
            logger.warning("Hook replaced after registration, leaving it installed", slot=slot.name)
            return False
        slot.set(previous if previous is not None else slot.default)
        return True

    # -------------------------------------------------------------------------
    # Hook wrappers
    # -------------------------------------------------------------------------

    def _capturing(self) -> bool:
        return getattr(self._local, "active", False)

    def handle_warning(
        self,
        message: Warning | str,
        category: type[Warning],
        filename: str,
        lineno: int,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """``warnings.showwarning`` replacement."""
        if not self._capturing():
            self._local.active = True
            try:
                self._client.capture_warning(message, category, filename, lineno)
            finally:
                self._local.active = False

        previous = self._chain.previous_warning_hook
        if previous is None:
            return False
        return previous(message, category, filename, lineno, *args, **kwargs)

    def handle_exception(
        self,
        exc_type: type[BaseException],
        exc: BaseException,
        tb: TracebackType | None,
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """``sys.excepthook`` replacement."""
        if not self._capturing():
            self._local.active = True
            try:
                self._client.capture_exception(exc, tb)
            finally:
                self._local.active = False

        previous = self._chain.previous_exception_hook
        if previous is None:
            return sys.__excepthook__(exc_type, exc, tb)
        return previous(exc_type, exc, tb, *args, **kwargs)

    def on_exit(self) -> None:
        """Capture a last uncaught exception if the hooks missed it, then flush."""
        try:
            exc = getattr(sys, "last_exc", None) or getattr(sys, "last_value", None)
            if exc is not None:
                self._client.capture_exception(exc, exc.__traceback__, dedupe=True)
        except Exception as e:
            logger.error("Exit-time exception check failed", error=str(e))
        self._client.flush()
