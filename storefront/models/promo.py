"""
Promotional content: offer popup, featured tiles, hero slides and recommendations.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from storefront.models.base import MongoBaseModel, utc_now


class TriggerType(str, Enum):
    SCROLL = "scroll"
    TIME = "time"
    IMMEDIATE = "immediate"
    EXIT = "exit"


class DisplayRules(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    trigger_type: TriggerType = TriggerType.SCROLL
    delay_seconds: int = Field(0, ge=0, le=300)
    show_once: bool = True


class OfferPopupDoc(MongoBaseModel):
    """
    Site-wide promotional popup.

    Collection: settings (type=offerPopup, single row)
    """

    type: str = "offerPopup"
    headline: str
    title: str
    subtitle: str
    is_active: bool = False
    display_rules: DisplayRules = Field(default_factory=DisplayRules)
    image_src: str | None = None
    image_public_id: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None
    created_by_email: str | None = None
    updated_by: str | None = None
    updated_by_email: str | None = None


class BackgroundType(str, Enum):
    IMAGE = "image"
    COLOR = "color"


class FeaturedCategoryDoc(MongoBaseModel):
    """
    Home page tile linking to a catalog category.

    Collection: featured_categories
    """

    category_id: str = Field(..., description="Client-visible id, e.g. category-1700000000000")
    title: str
    category_param: str = Field(..., description="Category name used in the product filter link")
    description: str = ""
    button_text: str = "EXPLORE"
    is_active: bool = True
    order: int = 0

    title_color: str = "#000000"
    description_color: str = "#000000"
    button_color: str = "#000000"
    background_type: BackgroundType = BackgroundType.IMAGE
    background_color: str = "#e5e7eb"

    # Image fields hold URLs; the matching ids are kept for deletion
    product_image: str | None = None
    product_image_public_id: str | None = None
    background_image: str | None = None
    background_image_public_id: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None
    updated_by: str | None = None

    def to_api(self) -> dict:
        data = super().to_api()
        # Admin pages address tiles by their client id
        data["id"] = self.category_id
        return data


class SlideAlignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class SlideDoc(MongoBaseModel):
    """
    Home page hero slide.

    Collection: sliders
    """

    slide_id: str = Field(..., description="Client-visible id, e.g. slide-1700000000000")
    title: str
    subtitle: str
    description: str = ""
    button_text: str = "Explore"
    button_link: str = "/products"
    alignment: SlideAlignment = SlideAlignment.CENTER
    is_active: bool = True
    order: int = 0

    image: str | None = None
    image_public_id: str | None = None

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None
    updated_by: str | None = None

    def to_api(self) -> dict:
        data = super().to_api()
        data["id"] = self.slide_id
        return data


class RecommendationImage(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    public_id: str
    alt: str = ""
    order: int = 0


class RecommendationDoc(MongoBaseModel):
    """
    "Recommended for you" home page section.

    Collection: settings (type=recommendation, single row)
    """

    type: str = "recommendation"
    header_title: str
    header_subtitle: str = ""
    main_title: str
    main_subtitle: str = ""
    button_text: str = "Explore Now"
    button_link: str = "/products"
    is_active: bool = True

    main_image: str | None = None
    main_image_public_id: str | None = None
    background_image: str | None = None
    background_image_public_id: str | None = None
    sub_images: list[RecommendationImage] = Field(default_factory=list)

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    created_by: str | None = None
    updated_by: str | None = None
