import sys

from lending_ledger.cli import main

sys.exit(main())
