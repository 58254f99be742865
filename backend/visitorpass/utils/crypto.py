import secrets

# No 0/O, 1/I/L: codes are read aloud and typed at the gate
ACCESS_CODE_ALPHABET = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"

def generate_access_code(length: int = 6) -> str:
    """Generate a random, human-enterable visitor pass code"""
    if length < 1:
        raise ValueError("code length must be at least 1")
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(length))

def normalize_code(code: str) -> str:
    """Uppercase and strip a code typed by a watchman"""
    return (code or "").strip().upper()
