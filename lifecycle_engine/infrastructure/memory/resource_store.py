"""In-memory resource store. Single-process; used by tests and local runs."""

import asyncio
from typing import Dict, Iterable, List, Optional, Tuple

from lifecycle_engine.domain.models.resource import Resource, ResourceRef
from lifecycle_engine.domain.status import ResourceKind

_Key = Tuple[ResourceKind, str]


class InMemoryResourceStore:
    """Implements ResourceStore and ResourceSource. Version check and write happen under one lock."""

    def __init__(self, resources: Iterable[Resource] = ()) -> None:
        self._resources: Dict[_Key, Resource] = {}
        self._lock = asyncio.Lock()
        for resource in resources:
            self._resources[(resource.kind, resource.resource_id)] = resource

    async def add(self, resource: Resource) -> None:
        """Insert a new resource. Creation is not a transition and is not audited."""
        async with self._lock:
            key = (resource.kind, resource.resource_id)
            if key in self._resources:
                raise ValueError(f"{resource.kind.value} already exists: {resource.resource_id}")
            self._resources[key] = resource

    async def load(self, ref: ResourceRef) -> Optional[Resource]:
        return self._resources.get((ref.kind, ref.resource_id))

    async def save_if_version_matches(self, resource: Resource, expected_version: int) -> bool:
        async with self._lock:
            key = (resource.kind, resource.resource_id)
            current = self._resources.get(key)
            if current is None or current.version != expected_version:
                return False
            self._resources[key] = resource
            return True

    async def refs_by_kind(self, kind: ResourceKind) -> List[ResourceRef]:
        return [r.ref for (k, _), r in sorted(self._resources.items()) if k == kind]
