"""Commerce bounded context: carts, discounts, inventory, checkout and orders.

Composition root for the transaction core. Every aggregate, command,
handler and event in the ``commerce`` package registers itself against the
``commerce`` domain declared here.
"""

import os

from protean.domain import Domain

from commerce.utils.logging import configure_logging, get_logger

configure_logging(log_dir=os.getenv("COMMERCE_LOG_DIR", "logs"), log_file_prefix="commerce")

logger = get_logger(__name__)

commerce = Domain(name="commerce")
