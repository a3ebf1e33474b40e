"""Module entrypoint for ``python -m busca``."""

from .cli import main


if __name__ == "__main__":
    main()
