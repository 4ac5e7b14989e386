from .db import BasicDB, DB, DBWrapper, OperationKind
from .config import BasicDbConfig, WrapperConfig
from .metrics import Measurements

__all__ = [
    "DB",
    "BasicDB",
    "DBWrapper",
    "OperationKind",
    "Measurements",
    "WrapperConfig",
    "BasicDbConfig",
]
