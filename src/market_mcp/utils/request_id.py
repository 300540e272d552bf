"""Request id generation."""

import itertools
import time

_counter = itertools.count(1)
_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_DIGITS[rem])
    return "".join(reversed(digits))


def new_request_id(prefix: str) -> str:
    """`<prefix>_<base36 epoch ms>_<process-wide counter>`, e.g. `rp_lr3k2x1a_7`."""
    return f"{prefix}_{to_base36(int(time.time() * 1000))}_{next(_counter)}"
