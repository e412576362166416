"""
autoapprove - Permission hook that decides coding-agent tool requests.

Each PermissionRequest goes through three tiers:
- Fast rules: deterministic allow/deny/passthrough patterns
- Decision cache: replay of earlier allow/deny verdicts
- Model arbiter: a language model's allow/deny judgment

Any failure in the slow path denies; nothing is ever allowed by default.

Example usage:
    $ echo '{"tool_name": "Read", "tool_input": {}}' | autoapprove hook
    $ autoapprove cache list
    $ autoapprove doctor --check-connection
"""

__version__ = "0.1.0"
__author__ = "autoapprove Contributors"

__all__ = [
    "__version__",
    "__author__",
]
