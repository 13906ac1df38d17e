import sys

from granulewatch.cli import main

sys.exit(main())
