from __future__ import annotations
from zulipbridge.cli import main

if __name__ == "__main__":
    main()
