import sys

from .jobs.portal_sync import main

sys.exit(main())
