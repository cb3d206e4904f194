"""Create the classes, students and attendance tables."""

import asyncio

from classroll.core.config import settings
from classroll.core.database import build_engine, init_models


async def main() -> None:
    engine = build_engine()
    try:
        await init_models(engine)
    finally:
        await engine.dispose()
    print(f"OK: tables ready on {settings.DATABASE_URL.rsplit('@', 1)[-1]}")


if __name__ == "__main__":
    asyncio.run(main())
