import sys

from forge_map.cli import main

sys.exit(main())
