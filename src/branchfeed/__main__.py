"""Allow ``python -m branchfeed``."""

from branchfeed.cli.main import cli


if __name__ == "__main__":
    cli()
