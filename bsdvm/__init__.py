"""bsd-vm-runner package."""

__all__ = [
    "cli",
    "commands",
    "config",
    "constants",
    "exceptions",
    "models",
    "network",
    "operating_system",
    "remote",
    "runtime",
    "supervisor",
    "utils",
    "vm",
]
