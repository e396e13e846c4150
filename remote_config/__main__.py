import sys

from remote_config.cli import main

if __name__ == "__main__":
    sys.exit(main())
