"""The HireFire entry point and its process-wide default instance."""

import collections.abc

import hirefire_resource.configuration


class HireFire:
    def __init__(self) -> None:
        self.configuration = hirefire_resource.configuration.Configuration()

    def configure(
        self,
        fn: collections.abc.Callable[[hirefire_resource.configuration.Configuration], object],
    ) -> None:
        """Pass the configuration to ``fn`` so it can register dynos and set the logger."""
        fn(self.configuration)


# Shared by the request interception layer and the lifespan helper unless
# a different instance is passed to them explicitly.
hirefire_instance = HireFire()
