"""Allow ``python -m honeybee_device``."""

import sys

from honeybee_device.cli import main

if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
