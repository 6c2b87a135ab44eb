class ProtocolContractError(TypeError):
    """Caller passed None where at least an empty object is required."""

def require_present(value, what: str):
    if value is None:
        raise ProtocolContractError(f"{what} must not be None (pass an empty object instead)")
    return value
