"""Nox sessions for testing, linting and type checking."""

import nox

# Test against Python 3.10 through 3.13
nox.options.sessions = ["lint", "tests"]
nox.options.default_venv_backend = "uv"


@nox.session(python=["3.10", "3.11", "3.12", "3.13"])
def tests(session):
    """Run the test suite with pytest."""
    session.install(".[dev]")
    session.run("pytest", "tests/", "-q", "--no-cov", *session.posargs)


@nox.session(python="3.12")
def lint(session):
    """Run ruff against the package and its tests."""
    session.install("ruff")
    session.run("ruff", "check", "src", "tests", "noxfile.py", *session.posargs)


@nox.session(python=["3.10", "3.11", "3.12", "3.13"])
def type_check(session):
    """Run mypy type checking."""
    session.install(".[dev]")
    session.install("mypy")
    session.run("mypy", "src/mihomo_exporter", *session.posargs)
