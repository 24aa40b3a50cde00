"""
Async usage example: the shipper shares the application's event loop.

Configuration comes from LOKISHIP_* environment variables, e.g.

    LOKISHIP_URL=http://localhost:3100/loki/api/v1/push
    LOKISHIP_LABELS=app:billing,env:dev
"""

import asyncio
import logging

from lokiship import enable_stdlib_bridge, get_shipper


async def main() -> None:
    async with get_shipper(batch_size=50) as shipper:
        enable_stdlib_bridge(shipper, level=logging.INFO)
        log = logging.getLogger("billing.invoices")

        for i in range(120):
            log.info("invoice %d created", i)
            await asyncio.sleep(0)

        shipper.warning("batch run finished", category="billing")


if __name__ == "__main__":
    asyncio.run(main())
