"""Error kinds raised by the bridge services.

Tools catch ``BridgeError`` at the MCP boundary and report ``str(error)``.
"""


class BridgeError(Exception):
    kind = "Error"


class NoActiveContext(BridgeError):
    """No page URL was given, or it is not on the platform's domains."""

    kind = "NoActiveContext"


class NoSession(BridgeError):
    """Every resolution strategy missed: the user is not logged in."""

    kind = "NoSession"


class TransportFailure(BridgeError):
    kind = "TransportFailure"

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RemoteFault(BridgeError):
    """A SOAP fault string (or REST error body) returned by the platform."""

    kind = "RemoteFault"


class ComponentFailure(BridgeError):
    kind = "ComponentFailure"


class DeployTimeout(BridgeError):
    kind = "Timeout"
