import random
import string
from typing import Optional

from .errors import ValidationError


CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 6
NAME_MAX_LENGTH = 20


def generate_code(rng: Optional[random.Random] = None, length: int = CODE_LENGTH) -> str:
    """Generate a short lobby code. Uniqueness is checked by the caller."""
    rng = rng or random
    return ''.join(rng.choices(CODE_ALPHABET, k=length))


def normalize_code(raw) -> str:
    """Trim and uppercase a typed code, rejecting anything that is not a valid code."""
    if not isinstance(raw, str):
        raise ValidationError('code', 'Lobby code is required')
    code = raw.strip().upper()
    if len(code) != CODE_LENGTH or any(ch not in CODE_ALPHABET for ch in code):
        raise ValidationError('code', f'Lobby code must be {CODE_LENGTH} letters or digits')
    return code


def normalize_name(raw) -> str:
    if not isinstance(raw, str):
        raise ValidationError('name', 'Player name is required')
    name = raw.strip()
    if not name:
        raise ValidationError('name', 'Player name is required')
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError('name', f'Player name must be at most {NAME_MAX_LENGTH} characters')
    return name
