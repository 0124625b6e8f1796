from .engine import SQLiteEngine, next_relation_name
from .functions import json_path_get, register_functions

__all__ = ["SQLiteEngine", "json_path_get", "next_relation_name", "register_functions"]
