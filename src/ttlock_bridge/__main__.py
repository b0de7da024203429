import sys

from ttlock_bridge.main import main

sys.exit(main())
