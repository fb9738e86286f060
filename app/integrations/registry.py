import logging
from typing import Optional

from app.activecampaign.integration import ActiveCampaignIntegration
from app.integrations.base import CRMIntegration
from app.sharpspring.integration import SharpSpringIntegration

INTEGRATION_CLASSES: dict[str, type[CRMIntegration]] = {
    ActiveCampaignIntegration.kind: ActiveCampaignIntegration,
    SharpSpringIntegration.kind: SharpSpringIntegration,
}


def get_integration_cls(kind: str) -> type[CRMIntegration]:
    try:
        return INTEGRATION_CLASSES[kind]
    except KeyError:
        kinds = ', '.join(INTEGRATION_CLASSES)
        raise ValueError(f'Unknown integration kind {kind!r}, must be one of {kinds}') from None


def build_integration(kind: str, settings: dict, logger: Optional[logging.Logger] = None) -> CRMIntegration:
    return get_integration_cls(kind)(settings, logger=logger)
