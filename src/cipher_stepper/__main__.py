"""Main entry point for the cipher_stepper package."""
from cipher_stepper.cli import cli


def main():
    """Main entry point function."""
    cli()


if __name__ == "__main__":
    main()
