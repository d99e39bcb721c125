import asyncio

from banwatch.logger import setup_logging
from banwatch.main import main


def run():
    setup_logging()
    asyncio.run(main())


if __name__ == "__main__":
    run()
