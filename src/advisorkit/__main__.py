import sys

from advisorkit.cli import main

sys.exit(main())
