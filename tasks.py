# tasks.py
"""
Developer task runner using Invoke.
Run `inv --list` to see tasks.

Key tasks:
  inv test
  inv demo
  inv clean
"""

from invoke import task
from pathlib import Path
import json
import shutil
import sys


REPO = Path(__file__).parent
SAMPLES = REPO / "data" / "samples"
OUTDIR = REPO / "data" / "out"


def _python():
    """Return the python executable inside the current venv."""
    return sys.executable or "python"


def _reconcile(c, *args):
    c.run(f'"{_python()}" -m cli.reconcile ' + " ".join(args), pty=False)


@task(help={"k": "Only run tests matching this expression"})
def test(c, k=None):
    """Run unit tests with pytest."""
    extra = f' -k "{k}"' if k else ""
    c.run(f'"{_python()}" -m pytest -q{extra}', pty=False)


@task
def demo(c):
    """Walk the sample receipt through classify -> merge -> duplicate check."""
    top = SAMPLES / "pages" / "page1_top.json"
    bottom = SAMPLES / "pages" / "page2_bottom.json"
    history = SAMPLES / "expenses.yaml"

    _reconcile(c, "date", '"O1/O3/2O24"', "--taken", "2024-03-02")
    _reconcile(c, "classify", f'"{top}"')
    _reconcile(c, "classify", f'"{bottom}"')

    OUTDIR.mkdir(parents=True, exist_ok=True)
    merged = OUTDIR / "merged.json"
    result = c.run(
        f'"{_python()}" -m cli.reconcile --quiet merge "{top}" "{bottom}" --json',
        hide=True,
        pty=False,
    )
    payload = result.stdout.strip().splitlines()[-1]

    merged.write_text(json.dumps(json.loads(payload)["result"]["record"], indent=2), encoding="utf-8")
    print(f"Wrote merged record -> {merged}")

    _reconcile(c, "dupes", f'"{history}"')
    _reconcile(c, "check", f'"{merged}"', f'"{history}"', "--family", "fam-1")


@task
def clean(c):
    """Delete demo outputs."""
    if OUTDIR.exists():
        shutil.rmtree(OUTDIR)
        print(f"Removed {OUTDIR}")
