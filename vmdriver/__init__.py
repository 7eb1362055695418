"""vmdriver package."""

__all__ = [
    "cli",
    "config",
    "configspec",
    "constants",
    "context",
    "devices",
    "driver",
    "exceptions",
    "models",
    "tasks",
    "utils",
    "vm",
]
