import sys
from ccfa.cli import main

sys.exit(main())
