import sys

from box_quota.cli import main

sys.exit(main())
