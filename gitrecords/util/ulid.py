"""Transaction ids for record commits

Every commit message ends with a ``Transaction-Id: <ULID>`` trailer, so
commits can be correlated with log lines and sorted by creation time.
"""

import re
from typing import Optional

from ulid import ULID

TRAILER_KEY = "Transaction-Id"

_TRAILER_RE = re.compile(rf"^{TRAILER_KEY}: ([0-9A-HJKMNP-TV-Z]{{26}})$", re.MULTILINE)


def ulid() -> str:
    """Generate a ULID string (26 chars, Crockford base32)"""
    return str(ULID())


def with_transaction_trailer(message: str, txn_id: str) -> str:
    """Append the transaction trailer to a commit message"""
    return f"{message.rstrip()}\n\n{TRAILER_KEY}: {txn_id}\n"


def transaction_id(message: str) -> Optional[str]:
    """Transaction id of a commit message, None when it carries no trailer"""
    match = _TRAILER_RE.search(message)
    return match.group(1) if match else None
