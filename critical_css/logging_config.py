"""Console logging setup for the CLI."""

import logging


def setup_logging(verbose: bool = False) -> None:
    """Configure root logging once: INFO by default, DEBUG when *verbose*."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s" if not verbose else "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
