"""Custom exceptions for BSD-VM-Runner."""


class VmError(RuntimeError):
    """Base class for unrecoverable configuration or runtime errors."""


class ConfigurationError(VmError):
    """Raised for unsupported guest OS, backend or resource combinations."""


class SpawnError(VmError):
    """Raised when the hypervisor process could not be launched."""


class LifecycleError(VmError):
    """Raised when an operation is invoked in a state that does not allow it."""


class DiscoveryExhaustedError(VmError):
    def __init__(self, mac_address: str, attempts: int) -> None:
        super().__init__(f"Failed to get IP address for MAC address: {mac_address} (after {attempts} attempts)")
        self.mac_address = mac_address
        self.attempts = attempts


class ReadinessTimeoutError(VmError):
    def __init__(self, timeout: int) -> None:
        super().__init__(f"Waiting for VM to become ready timed out after {timeout} seconds")
        self.timeout = timeout


class RemoteCommandError(VmError):
    """A command inside the guest exited with a non-zero status."""

    def __init__(self, command: str, exit_code: int) -> None:
        super().__init__(f"Command inside VM failed with exit code {exit_code}: {command}")
        self.command = command
        self.exit_code = exit_code
