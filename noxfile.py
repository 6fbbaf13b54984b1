import nox

PYTHONS = ["3.11", "3.12", "3.13"]


@nox.session(python=PYTHONS)
def tests(session):
    """Whole fastcheck suite: arbitraries, runner, scheduler and model runs."""
    session.install(".[dev]")
    session.run("pytest", "tests", *session.posargs, external=True)


@nox.session(python=PYTHONS[-1])
def arbitraries(session):
    """Generation and shrinking laws only, with a fixed hypothesis seed."""
    session.install(".[dev]")
    session.run(
        "pytest",
        "tests/a_unit/arbitrary",
        "tests/a_unit/core",
        "--hypothesis-seed=0",
        *session.posargs,
        external=True,
    )
