"""calls 端点投递模块。"""

from callrelay.delivery.client import CallDeliveryClient, DeliveryOutcome

__all__ = ["CallDeliveryClient", "DeliveryOutcome"]
