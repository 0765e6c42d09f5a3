import os
import sys

# Add repo root to Python import path so `import chartcore...` works
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="Run the chart core API")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload for development")
    args = parser.parse_args()

    # Log level comes from LOG_LEVEL via chartcore.config.
    uvicorn.run("chartcore.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
