"""Build-time content inventory consumed by the URL sampler."""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ImageUrls(BaseModel):
    android: Optional[str] = None
    hd: Optional[str] = None


class Card(BaseModel):
    """One content record from cards.json."""
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    id: str
    asset_id: Optional[str] = None
    name: str = ""
    playable: bool = False
    image_urls: Optional[ImageUrls] = None

    @property
    def hd_image(self) -> Optional[str]:
        return self.image_urls.hd if self.image_urls else None


class CardInventory(BaseModel):
    """Top-level cards.json document."""
    model_config = ConfigDict(extra="ignore")

    version: str = ""
    total_cards: int = 0
    cloudinary_base_url: Optional[str] = None
    cards: Dict[str, Card] = Field(default_factory=dict)

    def playable_cards(self) -> List[Card]:
        return [card for card in self.cards.values() if card.playable]
