import logging
import sys

from .config import settings

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)],
)
# The CRM clients log every request with its status themselves
logging.getLogger('httpx').setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the `relay` namespace, e.g. get_logger('activecampaign') -> relay.activecampaign"""
    if name != 'relay' and not name.startswith('relay.'):
        name = f'relay.{name}'
    return logging.getLogger(name)
