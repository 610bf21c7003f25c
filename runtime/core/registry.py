"""
Type-indexed object registry.

Each Scene owns one ObjectRegistry. When a scene is built it registers its
objects explicitly; the registry indexes every object under each class in
its MRO, so queries by interface type (e.g. "every PersistentUnit") are a
dictionary lookup instead of a scan.

Discovery order is registration order, and every query preserves it.

Usage:
    registry = ObjectRegistry()
    registry.add(RememberVisibility(constant_id=12, target=door))
    for unit in registry.get_all(PersistentUnit):
        ...
"""

from __future__ import annotations

from typing import Any, Iterator, TypeVar

T = TypeVar('T')


class ObjectRegistry:
    """
    Container for scene objects.

    Provides:
    - Registration in discovery order
    - Index by every base class (interfaces included)
    - Lookup by name
    """

    def __init__(self):
        self._objects: dict[int, Any] = {}
        self._order: list[int] = []
        self._type_index: dict[type, list[int]] = {}
        self._by_name: dict[str, Any] = {}

    def add(self, obj: T, name: str = "") -> T:
        """
        Register an object.

        Args:
            obj: The object to register
            name: Optional lookup name

        Returns:
            The registered object
        """
        key = id(obj)
        if key in self._objects:
            raise ValueError(f"{obj!r} is already registered")

        self._objects[key] = obj
        self._order.append(key)
        for cls in type(obj).__mro__:
            if cls is object:
                continue
            self._type_index.setdefault(cls, []).append(key)

        if name:
            self._by_name[name] = obj
        return obj

    def remove(self, obj: Any) -> None:
        key = id(obj)
        if key not in self._objects:
            return

        del self._objects[key]
        self._order.remove(key)
        for cls in type(obj).__mro__:
            keys = self._type_index.get(cls)
            if keys and key in keys:
                keys.remove(key)

        for name, named in list(self._by_name.items()):
            if named is obj:
                del self._by_name[name]

    def get(self, name: str) -> Any | None:
        return self._by_name.get(name)

    def get_all(self, cls: type[T]) -> list[T]:
        """All registered objects that are instances of cls, in discovery order."""
        return [self._objects[key] for key in self._type_index.get(cls, [])]

    def first(self, cls: type[T]) -> T | None:
        keys = self._type_index.get(cls)
        return self._objects[keys[0]] if keys else None

    def __iter__(self) -> Iterator[Any]:
        return (self._objects[key] for key in self._order)

    def __len__(self) -> int:
        return len(self._objects)

    def __contains__(self, obj: Any) -> bool:
        return id(obj) in self._objects

    def clear(self) -> None:
        self._objects.clear()
        self._order.clear()
        self._type_index.clear()
        self._by_name.clear()
