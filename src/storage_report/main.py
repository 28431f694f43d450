from __future__ import annotations

import asyncio
import logging

from .config.loader import load_settings
from .runtime.setup import setup_runtime

__all__ = ["main"]


async def main(config_path: str = "config/settings.json") -> None:
    logging.basicConfig(level=logging.INFO)
    service, manager = await setup_runtime(load_settings(config_path))
    try:
        await asyncio.Event().wait()
    finally:
        await service.dispose()
        aclose = getattr(manager, "aclose", None)
        if aclose is not None:
            await aclose()


if __name__ == "__main__":
    asyncio.run(main())
