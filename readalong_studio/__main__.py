"""Package entry point for ``python -m readalong_studio``.

WHY: Python's ``-m`` flag looks for ``__main__.py`` inside the package.

HOW: Delegates to the CLI's main() and exits with its return code.
``serve`` as the first argument starts the HTTP API instead.
"""

import sys

if __name__ == "__main__":
    if sys.argv[1:2] == ["serve"]:
        from readalong_studio.server.app import run_api
        run_api()
    else:
        from readalong_studio.cli import main
        sys.exit(main())
