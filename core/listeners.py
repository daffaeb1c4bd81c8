"""Listener handles: an invocable target plus a validity predicate."""

from __future__ import annotations

import logging
import weakref
from types import MethodType, ModuleType
from typing import Any, Callable, Hashable, Optional, Tuple

from core.errors import ConfigurationError

LOGGER = logging.getLogger(__name__)

AlivePredicate = Callable[[], bool]


def _describe_callable(target: Callable[..., Any]) -> str:
    owner = getattr(target, "__self__", None)
    name = getattr(target, "__name__", None)
    if owner is not None and name and not isinstance(owner, ModuleType):
        return f"{type(owner).__name__}.{name}"
    qualname = getattr(target, "__qualname__", None)
    if qualname:
        module = getattr(target, "__module__", None)
        return f"{module}.{qualname}" if module else qualname
    return repr(target)


class ListenerHandle:
    """Reference to a registered callback.

    Bound methods are held through :class:`weakref.WeakMethod` so that a
    subscription never keeps its owner alive; once the owner is collected the
    handle reports itself invalid and the dispatcher skips it. Other callables
    are held strongly. An optional ``alive`` predicate adds an explicit check
    on top, e.g. "is this node still attached to the scene".

    Two handles compare equal when they wrap the same member on the same
    owner, regardless of which wrapper object was created first.
    """

    __slots__ = ("_method_ref", "_owner_ref", "_target", "_func", "_owner_id", "_alive", "_name")

    def __init__(self, target: Callable[..., Any], alive: Optional[AlivePredicate] = None) -> None:
        if not callable(target):
            raise ConfigurationError(f"listener must be callable, got {target!r}")
        if alive is not None and not callable(alive):
            raise ConfigurationError(f"validity predicate must be callable, got {alive!r}")

        self._method_ref: Optional[weakref.WeakMethod] = None
        self._owner_ref: Optional[Callable[[], Any]] = None
        self._target: Optional[Callable[..., Any]] = None
        self._alive = alive
        self._name = _describe_callable(target)

        if isinstance(target, MethodType):
            owner = target.__self__
            self._func: Any = target.__func__
            self._owner_id: Optional[int] = id(owner)
            try:
                self._method_ref = weakref.WeakMethod(target)
                self._owner_ref = weakref.ref(owner)
            except TypeError:
                # owner does not support weak references (e.g. __slots__ without __weakref__)
                self._target = target
                self._owner_ref = lambda: owner
        else:
            self._target = target
            self._owner_id = None
            try:
                hash(target)
                self._func = target
            except TypeError:
                # unhashable callable instances are matched by identity
                self._func = id(target)

    @classmethod
    def wrap(
        cls,
        listener: "ListenerHandle | Callable[..., Any]",
        alive: Optional[AlivePredicate] = None,
    ) -> "ListenerHandle":
        """Return ``listener`` as a handle, wrapping plain callables."""

        if isinstance(listener, ListenerHandle):
            if alive is not None:
                raise ConfigurationError("cannot attach a validity predicate to an existing handle")
            return listener
        return cls(listener, alive=alive)

    def _resolve(self) -> Optional[Callable[..., Any]]:
        if self._method_ref is not None:
            return self._method_ref()
        return self._target

    def is_valid(self) -> bool:
        """True while the owner is alive and the predicate (if any) holds."""

        if self._resolve() is None:
            return False
        if self._alive is None:
            return True
        try:
            return bool(self._alive())
        except Exception:
            LOGGER.exception("Validity predicate for %s raised; treating listener as invalid", self._name)
            return False

    def invoke(self, *args: Any) -> bool:
        """Call the target with ``args``; returns False if the owner is gone."""

        target = self._resolve()
        if target is None:
            LOGGER.debug("Listener %s was collected before invocation", self._name)
            return False
        target(*args)
        return True

    def describe(self) -> str:
        return self._name

    def _key(self) -> Tuple[Optional[int], Hashable]:
        return self._owner_id, self._func

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ListenerHandle):
            return NotImplemented
        if self._key() != other._key():
            return False
        if self._owner_ref is None or other._owner_ref is None:
            return self._owner_ref is other._owner_ref
        # guards against id() reuse after the original owner was collected
        return self._owner_ref() is other._owner_ref()

    def __hash__(self) -> int:
        return hash(self._key())

    def __repr__(self) -> str:
        state = "valid" if self.is_valid() else "invalid"
        return f"ListenerHandle({self._name}, {state})"


__all__ = ["AlivePredicate", "ListenerHandle"]
