"""Exception types shared across the launcher."""


class LauncherError(Exception):
    """Base class for all launcher errors."""


class ConfigError(LauncherError):
    """The configuration file could not be read or parsed."""


class DiscoveryError(LauncherError):
    """Base class for discovery transport errors."""


class TransportError(DiscoveryError):
    """The discovery transport is unusable. Fatal."""


class CollisionError(DiscoveryError):
    """A published name is already taken on the network."""

    def __init__(self, name: str):
        super().__init__(f"Service name '{name}' is already in use")
        self.name = name


class ResolveError(DiscoveryError):
    """A browsed service could not be resolved."""


class LaunchError(LauncherError):
    """The game process could not be started. Fatal."""
