from transformo.models.business import Business
from transformo.models.content import Content, ContentAsset
from transformo.models.processed_event import ProcessedEvent
from transformo.models.subscription import Subscription

__all__ = ["Business", "Content", "ContentAsset", "ProcessedEvent", "Subscription"]
