"""Allow running playmirror as ``python -m playmirror``."""

from playmirror.cli import main

if __name__ == "__main__":
    main()
