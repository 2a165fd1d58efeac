# SQLite card store
from .base import Base
from .models import CardModel, CardStudyData, DeckModel
from .store import CardStore, Deck, DeckStats

__all__ = ["Base", "CardModel", "CardStudyData", "DeckModel", "CardStore", "Deck", "DeckStats"]
