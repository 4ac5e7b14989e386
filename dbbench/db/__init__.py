from .models import (
    AttemptResult,
    ByteIterator,
    OperationKind,
    RandomByteIterator,
    StringByteIterator,
)
from .base import DB
from .basic import BasicDB
from .wrapper import DBWrapper

__all__ = [
    "DB",
    "BasicDB",
    "DBWrapper",
    "OperationKind",
    "AttemptResult",
    "ByteIterator",
    "StringByteIterator",
    "RandomByteIterator",
]
