"""Error types shared across cliprelay."""


class ConfigError(ValueError):
    """
    Raised for invalid or incomplete startup configuration.

    Covers unresolvable addresses, missing model files, missing API keys
    and malformed hotkey specs. Always raised before a node enters its
    control loop.
    """
