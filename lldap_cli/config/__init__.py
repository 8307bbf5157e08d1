"""Configuration module for the LLDAP CLI."""
from .settings import ClientConfig, Endpoints, build_config, merge_layers

__all__ = ["ClientConfig", "Endpoints", "build_config", "merge_layers"]
