# Cloudflare Gateway Sync
# Author: SeriousHoax
# GitHub: https://github.com/SeriousHoax
# License: MIT

__version__ = "1.0.0"
