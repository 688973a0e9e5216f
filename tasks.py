import os

from invoke import task, Context


IS_CI = os.getenv("GITHUB_ACTIONS") == "true"


@task
def doc(c: Context):
    """Generate documentation"""
    c.run("pdoc -o ./doc infra_nearby/", echo=True, pty=True)


@task
def doco(c: Context):
    """Generate documentation and open in browser"""
    from pathlib import Path
    import webbrowser

    doc(c)

    path = Path(__file__).parent / "doc" / "index.html"
    url = f"file://{path}"
    webbrowser.open(url, new=0, autoraise=True)


@task
def fmt(c: Context):
    """Run code formatters"""
    c.run("ruff check --select I --fix infra_nearby test", echo=True, pty=True)
    c.run("ruff format infra_nearby test tasks.py", echo=True, pty=True)


@task
def install(c: Context):
    """Install all dependencies"""
    c.run("poetry lock", echo=True, pty=True)
    c.run("poetry install --all-extras", echo=True, pty=True)


@task
def lint(c: Context):
    """Run linter and type checker"""
    c.run("ruff check infra_nearby/", echo=True, warn=True, pty=True)
    c.run("mypy infra_nearby/", echo=True, warn=True, pty=True)


@task
def test(c: Context):
    """Run all tests in parallel"""
    _pytest(c, cov=not IS_CI, parallel=True)


@task
def test_cov(c: Context):
    """Run all tests in parallel, with coverage report"""
    _pytest(c, cov=True, parallel=True)


@task
def test_quick(c: Context):
    """Run all tests in a single process"""
    _pytest(c, cov=not IS_CI, parallel=False)


def _pytest(c: Context, *, cov: bool, parallel: bool):
    cmd = ["poetry", "run", "pytest", "-vv"]

    if cov:
        cmd.append("--cov=infra_nearby/")

    if cov and IS_CI:
        cmd.append("--cov-report=xml")

    if parallel:
        cmd.append("--numprocesses=auto")
        cmd.append("--dist=loadgroup")

    c.run(" ".join(cmd), echo=True, pty=True)

    if cov and not IS_CI:
        c.run("rm .coverage*", echo=True, pty=True)


@task
def test_publish(c: Context):
    """Perform a dry run of publishing the package"""
    c.run("poetry publish --build --dry-run --no-interaction", echo=True, pty=True)


@task
def tree(c: Context):
    """Display the tree of dependencies"""
    c.run("poetry show --without=dev --tree", echo=True, pty=True)
