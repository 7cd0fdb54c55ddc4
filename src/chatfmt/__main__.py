import sys

from chatfmt.cli import main

sys.exit(main())
