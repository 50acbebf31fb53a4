"""
logging.py — Records Portal Log Stream

Purpose:
- One line per event, in a fixed pipe-separated layout, for the API process
  and the records-portal CLI alike.
- Give access-gate denials, assignment changes, audit drops and storage
  failures a single place to land, since clients only ever see the short
  `{success, message}` envelope.

Format: timestamp | level | logger | message

Rules:
- Never log password material or full session tokens.
- Storage and database error detail hidden from API clients is logged here.
"""

import logging

# -----------------------------------------------------------------------------
# Log Format
# -----------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# boto3 / botocore are very chatty at INFO
_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3")

# -----------------------------------------------------------------------------
# Setup
# -----------------------------------------------------------------------------

def configure_logging(level: str = "INFO") -> None:
    """
    Install the portal format on the root logger at `level` (LOG_LEVEL) and
    hold the AWS SDK loggers at WARNING. Unknown level names fall back to
    INFO. create_app() and cli.main() both call this; repeat calls leave the
    first configuration in place.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Logging initialized with level %s", level)


def get_logger(name: str) -> logging.Logger:
    """Module logger; call as `get_logger(__name__)`."""
    return logging.getLogger(name)
