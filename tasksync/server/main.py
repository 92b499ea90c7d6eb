"""CLI argument parsing and uvicorn entry point."""

import logging
import os


def main():
    import argparse
    import uvicorn

    from ..config import load_settings

    parser = argparse.ArgumentParser(description="tasksync API Server")
    parser.add_argument("--config", default=os.getenv("TASKSYNC_CONFIG", "config.yaml"))
    parser.add_argument("--host", default=os.getenv("TASKSYNC_HOST", "0.0.0.0"))
    parser.add_argument("--port", type=int, default=int(os.getenv("TASKSYNC_PORT", "8000")))
    args = parser.parse_args()

    settings = load_settings(args.config)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(levelname)s: %(name)s - %(message)s",
    )

    from ..service import TaskSyncService
    from .app import api, set_service
    set_service(TaskSyncService(settings))

    uvicorn.run(api, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
