"""Allow ``python -m sketchlab``."""

from sketchlab.cli import main

if __name__ == "__main__":
    raise SystemExit(main())
