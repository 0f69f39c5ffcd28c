"""Interactive prompts on the terminal."""

from __future__ import annotations

import sys

from .errors import quit_error


def prompt(msg):
    """Show ``msg: `` on stderr and return the trimmed line read from stdin."""
    sys.stderr.write(f"{msg}: ")
    sys.stderr.flush()
    try:
        try:
            line = sys.stdin.readline()
        except OSError as err:
            raise RuntimeError("failed to read input from prompt") from err
    except RuntimeError as err:
        quit_error(err)
    return line.strip()


def prompt_yes(msg, default=None):
    """Ask a yes/no question until answered; empty input picks ``default``."""
    options = "[{}/{}]".format(
        "Y" if default is True else "y",
        "N" if default is False else "n",
    )
    while True:
        answer = prompt(f"{msg} {options}")
        if not answer and default is not None:
            return default
        result = derive_bool(answer)
        if result is not None:
            return result


def derive_bool(text):
    """Interpret ``text`` as yes or no; ``None`` if it is neither."""
    text = text.strip().lower()
    if text in ("y", "ye", "t", "1"):
        return True
    if text in ("n", "f", "0"):
        return False
    if text.startswith(("yes", "true")):
        return True
    if text.startswith(("no", "false")):
        return False
    return None