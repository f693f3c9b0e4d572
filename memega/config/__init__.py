from memega.config.helpers import build_evolve_config, build_meta, build_problem, to_plain
from memega.config.resolvers import register_resolvers

__all__ = [
    "build_evolve_config",
    "build_meta",
    "build_problem",
    "register_resolvers",
    "to_plain",
]
