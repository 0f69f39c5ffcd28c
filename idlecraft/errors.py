"""Reporting errors and hints to the user, and quitting."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path

from .style import highlight, highlight_error, highlight_info, highlight_warning

_DEFAULT_NAME = "idlecraft"


def bin_name():
    """Name of the invoked executable, falling back to the package name."""
    if sys.argv and sys.argv[0]:
        name = Path(sys.argv[0]).name
        if name:
            return name
    return _DEFAULT_NAME


def _eprint(*parts):
    print(*parts, file=sys.stderr)


def _chain(err):
    seen = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        err = err.__cause__ if err.__cause__ is not None else err.__context__


@dataclass
class ErrorHints:
    """Hints shown along with an error."""

    info: list = field(default_factory=list)
    config: bool = False
    config_generate: bool = False
    config_test: bool = False
    verbose: bool = True
    help: bool = True

    def add_info(self, info):
        """Add an info message; returns the hints for chaining."""
        self.info.append(info)
        return self

    def any(self):
        """Whether any hint would be printed."""
        return (
            self.config
            or self.config_generate
            or self.config_test
            or self.verbose
            or self.help
        )

    def print(self, end_newline=False):
        """Print the info messages and hints to stderr."""
        for msg in self.info:
            _eprint(highlight_info("info:"), msg)

        if not self.any():
            return

        _eprint()
        name = bin_name()
        if self.config_generate:
            _eprint(
                f"Use '{highlight(f'{name} config generate')}' to generate a new config file"
            )
        if self.config:
            _eprint(f"Use '{highlight('--config FILE')}' to select a config file")
        if self.config_test:
            _eprint(
                f"Use '{highlight(f'{name} config test -c FILE')}' to test a config file"
            )
        if self.verbose:
            _eprint(f"For a detailed log add '{highlight('--verbose')}'")
        if self.help:
            _eprint(f"For more information add '{highlight('--help')}'")

        if end_newline:
            _eprint()
        sys.stderr.flush()


def print_error(err):
    """Print an exception and its causes to stderr."""
    messages = [str(e) for e in _chain(err) if str(e)]
    for i, msg in enumerate(messages):
        label = "error:" if i == 0 else "caused by:"
        _eprint(highlight_error(label), msg)
    if not messages:
        _eprint(highlight_error("error:"), "an undefined error occurred")


def print_error_msg(msg):
    """Print an error message to stderr."""
    print_error(Exception(msg))


def print_warning(msg):
    """Print a warning to stderr."""
    _eprint(highlight_warning("warning:"), msg)


def quit():
    """Exit successfully."""
    sys.exit(0)


def quit_error(err, hints=None):
    """Print the error and hints, then exit with code 1."""
    print_error(err)
    (hints if hints is not None else ErrorHints()).print(False)
    sys.exit(1)


def quit_error_msg(msg, hints=None):
    """Print the error message and hints, then exit with code 1."""
    quit_error(Exception(msg), hints)