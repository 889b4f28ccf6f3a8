"""Package entry point for ``python -m prominence_captions``.

WHY: Users run ``python -m prominence_captions replay session.jsonl`` or
``python -m prominence_captions serve`` without installing the console
script.

HOW: Delegates straight to the CLI's main() function, which owns
argument parsing and subcommand dispatch.
"""

from prominence_captions.cli import main

if __name__ == "__main__":
    main()
