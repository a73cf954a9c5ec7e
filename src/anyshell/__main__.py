"""Module entrypoint for `python -m anyshell`."""

try:
    from .cli import run
except ImportError:
    # Executed as a plain script (no package context), e.g. via runpy.run_path.
    from anyshell.cli import run


if __name__ == "__main__":
    raise SystemExit(run())
