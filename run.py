import sys

from safevpn.main import main
from safevpn.logging_utility import logger


if __name__ == '__main__':
    logger.debug("Starting SafeVPN")
    sys.exit(main())
