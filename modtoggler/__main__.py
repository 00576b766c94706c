"""Allow running modtoggler as a module: python -m modtoggler."""

from modtoggler.runner import main

if __name__ == "__main__":
    main()
