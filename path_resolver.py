#!/usr/bin/env python3
"""
Path Resolver for Kenosis

Expands a leading home-directory token in a rule's path template.
Only "$HOME" or a single leading "~" are recognized; nothing else is expanded.
"""

import os
from typing import Mapping, Optional

HOME_TOKEN = "$HOME"
HOME_SHORTHAND = "~"


def home_directory(environ: Optional[Mapping[str, str]] = None) -> str:
    """Return the user's home directory from the environment ("" if unset)"""
    env = os.environ if environ is None else environ
    return env.get("HOME", "")


def expand_home(template: str, environ: Optional[Mapping[str, str]] = None) -> str:
    """Replace a leading home token in *template* with the home directory

    Args:
        template: Path template, e.g. "$HOME/.cache" or "~/Library/Caches"
        environ: Environment mapping to read HOME from (defaults to os.environ)

    Returns:
        The expanded path. Templates without a leading token pass through unchanged.
    """
    if template.startswith(HOME_TOKEN):
        return home_directory(environ) + template[len(HOME_TOKEN) :]
    if template.startswith(HOME_SHORTHAND):
        return home_directory(environ) + template[len(HOME_SHORTHAND) :]
    return template
