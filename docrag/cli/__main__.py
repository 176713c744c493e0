import sys

from docrag.cli.commands import main

sys.exit(main())
