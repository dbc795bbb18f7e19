"""Allow ``python -m riskregister``."""

from riskregister.cli.click_app import main

if __name__ == "__main__":
    main()
