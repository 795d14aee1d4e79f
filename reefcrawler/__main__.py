"""Entry point: python -m reefcrawler.

Loads the crawler configuration and prints it (secrets masked) as JSON.
"""

import json
import logging
import sys

from reefcrawler.settings import ConfigurationError, load_settings

logger = logging.getLogger("reefcrawler")


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    pg = settings.postgres_config
    logger.info(
        "Crawler configured: network=%s environment=%s nodes=%d postgres=%s:%d/%s",
        settings.network,
        settings.environment,
        len(settings.node_urls),
        pg.host,
        pg.port,
        pg.database,
    )
    print(json.dumps(settings.redacted(), indent=2))


if __name__ == "__main__":
    main()
