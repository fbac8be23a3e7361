"""Project root entry point for launching the web interface."""

from __future__ import annotations

import os


def main():
    from srt_translator.web import create_app

    app = create_app()
    host = os.environ.get("SRT_TRANSLATOR_HOST", "127.0.0.1")
    port = int(os.environ.get("SRT_TRANSLATOR_PORT", "5500"))
    # The reloader would start a second queue runtime in the child process
    app.run(host=host, port=port, debug=False, use_reloader=False)


if __name__ == "__main__":
    main()
