"""
Promotional content: the offer popup, featured category tiles, hero
slides and the recommendation section.
"""

from storefront.content.featured import FeaturedCategoryService
from storefront.content.offer_popup import OfferPopupService
from storefront.content.recommendation import RecommendationService
from storefront.content.slider import SliderService

__all__ = ["OfferPopupService", "FeaturedCategoryService", "SliderService", "RecommendationService"]
