# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

import sys

from .cli import main

sys.exit(main())
