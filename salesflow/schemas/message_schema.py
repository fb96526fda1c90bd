"""Inbound classifier output, channel/campaign context and outbound responses."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class Intent(str, Enum):
    """Intents reported by the message classifier."""
    GREETING = "greeting"
    THANKS = "thanks"
    GOODBYE = "goodbye"
    OPT_OUT = "opt_out"

    PRICE_QUERY = "price_query"
    PRODUCT_INQUIRY = "product_inquiry"
    AVAILABILITY_QUERY = "availability_query"

    SIZE_SPECIFICATION = "size_specification"
    PERCENTAGE_SPECIFICATION = "percentage_specification"
    QUANTITY_SPECIFICATION = "quantity_specification"
    COLOR_SPECIFICATION = "color_specification"
    LENGTH_SPECIFICATION = "length_specification"

    SHIPPING_QUERY = "shipping_query"
    LOCATION_QUERY = "location_query"
    PAYMENT_QUERY = "payment_query"
    DELIVERY_TIME_QUERY = "delivery_time_query"

    INSTALLATION_QUERY = "installation_query"
    WARRANTY_QUERY = "warranty_query"
    CUSTOM_SIZE_QUERY = "custom_size_query"

    CONFIRMATION = "confirmation"
    REJECTION = "rejection"
    CLARIFICATION = "clarification"
    FOLLOW_UP = "follow_up"

    HUMAN_REQUEST = "human_request"
    COMPLAINT = "complaint"

    OFF_TOPIC = "off_topic"
    UNCLEAR = "unclear"


class Product(str, Enum):
    """Product families the classifier can recognize."""
    MALLA_SOMBRA = "malla_sombra"
    ROLLO = "rollo"
    BORDE_SEPARADOR = "borde_separador"
    GROUNDCOVER = "groundcover"
    MONOFILAMENTO = "monofilamento"
    UNKNOWN = "unknown"


class ClassifierEntities(BaseModel):
    """Entities the classifier may have pre-parsed from the message."""
    dimensions: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    length: Optional[float] = None
    borde_length: Optional[float] = None
    percentage: Optional[int] = None
    quantity: Optional[int] = None
    color: Optional[str] = None
    location: Optional[str] = None
    zip_code: Optional[str] = None


class ClassifierResult(BaseModel):
    """Structured output of ``Classifier.classify``."""
    intent: Intent = Intent.UNCLEAR
    product: Product = Product.UNKNOWN
    entities: ClassifierEntities = Field(default_factory=ClassifierEntities)
    confidence: float = 0.0

    @classmethod
    def unclear(cls) -> "ClassifierResult":
        """Result used when the classifier is unavailable."""
        return cls()


class ChannelContext(BaseModel):
    """Where the message came from, including any advertising referral."""
    channel: str = "messenger"
    ad_id: Optional[str] = None
    ad_flow_ref: Optional[str] = None
    ad_product: Optional[str] = None


class CampaignContext(BaseModel):
    """Campaign attached to the conversation by the ad resolver."""
    name: str
    goal: Optional[str] = None
    audience_type: Optional[str] = None
    catalog_url: Optional[str] = None
    lead_flow_key: Optional[str] = None


class FlowResponse(BaseModel):
    """What a handler returns for one turn."""
    text: str = ""
    handled_by: str = ""
    purchase_intent: Optional[str] = None
    handoff: bool = False
    silent: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def drop(cls, handled_by: str) -> "FlowResponse":
        """A deliberate non-reply, e.g. for spam."""
        return cls(handled_by=handled_by, silent=True)
