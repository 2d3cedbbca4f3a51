#!/usr/bin/env python3
"""
Script to run the Book Review API server.
"""

import uvicorn

from bookreviews.config import config
from utilities.config import config as service_config


def main():
    """Run the API server."""
    print("Starting Book Review API Server")
    print(f"Host: {config.host}")
    print(f"Port: {config.port}")
    print(f"Debug: {config.debug}")
    print(f"Database: {service_config.mongodb_database}")
    print("=" * 50)

    uvicorn.run(
        "bookreviews.main:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
        access_log=True
    )


if __name__ == "__main__":
    main()
