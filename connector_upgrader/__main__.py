import sys

from connector_upgrader.run import main

sys.exit(main())
