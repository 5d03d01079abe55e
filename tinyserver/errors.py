class TinyServerError(Exception):
    pass


class ConfigError(TinyServerError):
    """Command line or config file cannot be turned into options."""


class StartupError(TinyServerError):
    """Resolved options cannot be used to start serving."""
