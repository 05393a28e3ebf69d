import sys

from market_stream.cli import main

sys.exit(main())
