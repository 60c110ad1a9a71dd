from typing import Dict, Iterable, Iterator, List, Optional

from bitbucket_provider.sources.external.bitbucket.descriptor import EndpointDescriptor
from bitbucket_provider.sources.external.bitbucket.descriptors import (
    commits,
    files,
    groups,
    ip_ranges,
    issues,
    pipelines,
    projects,
    pull_requests,
    refs,
    repositories,
    users,
    workspaces,
)

DESCRIPTOR_MODULES = (
    users,
    workspaces,
    groups,
    projects,
    repositories,
    refs,
    commits,
    files,
    pull_requests,
    pipelines,
    issues,
    ip_ranges,
)


class DescriptorRegistry:
    """Logical data source name to endpoint descriptor"""

    def __init__(self, descriptors: Optional[Iterable[EndpointDescriptor]] = None) -> None:
        self._descriptors: Dict[str, EndpointDescriptor] = {}
        for descriptor in descriptors or ():
            self.register(descriptor)

    def register(self, descriptor: EndpointDescriptor) -> None:
        if descriptor.name in self._descriptors:
            raise ValueError(f"data source {descriptor.name} is already registered")
        self._descriptors[descriptor.name] = descriptor

    def get(self, name: str) -> Optional[EndpointDescriptor]:
        return self._descriptors.get(name)

    def names(self) -> List[str]:
        return sorted(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors

    def __iter__(self) -> Iterator[EndpointDescriptor]:
        return iter(self._descriptors.values())

    def __len__(self) -> int:
        return len(self._descriptors)


def build_default_registry() -> DescriptorRegistry:
    """Registry of every Bitbucket data source shipped with the provider."""
    registry = DescriptorRegistry()
    for module in DESCRIPTOR_MODULES:
        for descriptor in module.DESCRIPTORS:
            registry.register(descriptor)
    return registry
