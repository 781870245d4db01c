import asyncio
import logging

from walletkeeper.app.db import init_models
from walletkeeper.app.db.session import engine

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    # Drop and recreate every table - DEV MODE ONLY
    asyncio.run(init_models(engine, drop=True))
    print(">>> Tables Created Successfully!")
