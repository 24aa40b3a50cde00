"""
Basic usage example for lokiship.

Starts a shipper in thread mode, logs a few entries at different levels
and drains on exit. Point LOKI_URL at a running Loki push endpoint.
"""

import os

from lokiship import LokiShipper


def main() -> None:
    url = os.getenv("LOKI_URL", "http://localhost:3100/loki/api/v1/push")

    with LokiShipper(url=url, labels={"instance": "example"}) as shipper:
        shipper.debug("This is a debug log", category="posts.send")
        shipper.info("This is an info log", category="posts.send")
        shipper.error("This is an error log", category="posts.send")

    print("Basic lokiship example completed")


if __name__ == "__main__":
    main()
