import argparse
import asyncio
import logging

from .common.config import settings


def main() -> None:
    parser = argparse.ArgumentParser(prog="marketplace")
    sub = parser.add_subparsers(dest="command")
    serve = sub.add_parser("serve", help="run the HTTP API (default)")
    serve.add_argument("--host", default=settings.APP_HOST)
    serve.add_argument("--port", type=int, default=settings.APP_PORT)
    sub.add_parser("seed", help="create tables and load demo users and lots")
    args = parser.parse_args()

    if args.command == "seed":
        from .seed import amain

        logging.basicConfig(level=logging.INFO)
        asyncio.run(amain())
        return

    from .app import create_app

    app = create_app()
    app.run(host=getattr(args, "host", settings.APP_HOST), port=getattr(args, "port", settings.APP_PORT))


if __name__ == "__main__":
    main()
