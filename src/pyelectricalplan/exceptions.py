"""Custom exceptions for pyelectricalplan."""


class PlanningError(Exception):
    """
    Base class for all planning errors.

    The derivation functions never raise these for well-typed input; they
    degrade by omission instead. These exceptions are raised by the state
    container and by the strict variants of the merge and lookup helpers.
    """

    pass


class UnknownSymbolTypeError(PlanningError):
    """Raised when a symbol type key is not present in the catalog."""

    def __init__(self, symbol_key: str):
        self.symbol_key = symbol_key
        super().__init__(f"Symbol type '{symbol_key}' not found in catalog.")


class UnknownDeviceError(PlanningError):
    """Raised when a device id is not present in the catalog."""

    def __init__(self, device_id: str, role: str = ""):
        self.device_id = device_id
        self.role = role
        ctx = f" for role '{role}'" if role else ""
        super().__init__(f"Device '{device_id}'{ctx} not found in catalog.")


class IncompatibleRequirementError(PlanningError):
    """Raised when two requirements for one role disagree on a non-numeric field."""

    def __init__(self, role: str, field_name: str, values: list):
        self.role = role
        self.field_name = field_name
        self.values = values
        super().__init__(
            f"Cannot merge '{role}' requirements: field '{field_name}' "
            f"differs between members ({values})."
        )


class SymbolNotFoundError(PlanningError):
    """Raised when a state mutation names a placed symbol that does not exist."""

    def __init__(self, symbol_id: str):
        self.symbol_id = symbol_id
        super().__init__(f"Placed symbol '{symbol_id}' does not exist.")


class NetzNotFoundError(PlanningError):
    """Raised when a state mutation names a network configuration that does not exist."""

    def __init__(self, netz_id: str):
        self.netz_id = netz_id
        super().__init__(f"Network configuration '{netz_id}' does not exist.")


class SchemaVersionError(PlanningError):
    """Raised when persisted state is newer than this library understands."""

    def __init__(self, found: int, supported: int):
        self.found = found
        self.supported = supported
        super().__init__(
            f"State schema version {found} is newer than the supported "
            f"version {supported}."
        )
