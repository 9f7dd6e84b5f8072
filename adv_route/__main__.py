"""Allow ``python -m adv_route``."""

from .main import main

if __name__ == "__main__":
    raise SystemExit(main())
