"""External command execution.

This module handles:
- Parsing of I/O redirect URIs
- Running commands with redirects, environment overlay and timeouts
"""

from srcbuild.shell.redirects import IoRedirects, Redirect, parse_redirect_uri
from srcbuild.shell.runner import CommandResult, ShellCommand, run_command

__all__ = [
    "CommandResult",
    "IoRedirects",
    "Redirect",
    "ShellCommand",
    "parse_redirect_uri",
    "run_command",
]
