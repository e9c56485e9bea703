import sys

from iparesign.cli import main

sys.exit(main())
