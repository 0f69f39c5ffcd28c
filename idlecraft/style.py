"""Terminal text highlighting."""

from termcolor import colored


def highlight(msg):
    """Highlight text."""
    return colored(msg, "yellow")


def highlight_error(msg):
    """Highlight text as an error."""
    return colored(msg, "red", attrs=["bold"])


def highlight_warning(msg):
    """Highlight text as a warning."""
    return colored(msg, "yellow", attrs=["bold"])


def highlight_info(msg):
    """Highlight text as information."""
    return colored(msg, "cyan")