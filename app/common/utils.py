def get_bearer(auth: str):
    """Extract bearer token from Authorization header"""
    try:
        return auth.split(' ')[1]
    except (AttributeError, IndexError):
        return None


def is_numeric(value) -> bool:
    """True for ints and for strings made only of digits, e.g. '12' but not '12a' or ''"""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    return isinstance(value, str) and value.strip().isdigit()
