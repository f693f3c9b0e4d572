import os

from omegaconf import OmegaConf


def register_resolvers() -> None:
    """Register the custom interpolations used by the YAML tree; safe to call twice."""
    OmegaConf.register_new_resolver(
        "cpu_count", lambda: os.cpu_count() or 1, replace=True
    )
