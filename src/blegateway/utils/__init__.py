"""Utility package for general-purpose helpers.

Provides environment configuration, address normalization, and serializers.
"""

from .address import equal, normalize
from .env import get_env_bool, get_env_float, get_env_int, get_env_list, get_env_str
from .serializers import characteristic_to_dict, node_to_dict, service_to_dict

__all__ = [
    # Address utilities
    "equal",
    "normalize",
    # Environment utilities
    "get_env_bool",
    "get_env_float",
    "get_env_int",
    "get_env_list",
    "get_env_str",
    # Serializers
    "characteristic_to_dict",
    "node_to_dict",
    "service_to_dict",
]
