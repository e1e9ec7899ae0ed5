"""
Word catalog
词库 - 按类别提供秘密词汇和提示词
"""

import random
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = "Objects"


@dataclass(frozen=True)
class WordCategory:
    words: Sequence[str]
    hints: Sequence[str]


@dataclass(frozen=True)
class SecretDraw:
    """A secret word with an independently drawn hint from the same category"""
    category: str
    word: str
    hint: str


DEFAULT_CATEGORIES: Dict[str, WordCategory] = {
    "Movies": WordCategory(
        words=("Titanic", "Inception", "Avatar", "Frozen", "Jaws", "Gladiator", "Matrix",
               "Shrek", "Godfather", "Jurassic Park", "Star Wars", "Avengers", "Joker",
               "Batman", "Spider-Man", "Forrest Gump", "Pulp Fiction", "Fight Club",
               "Interstellar", "Gravity"),
        hints=("Entertainment", "Cinema", "Film", "Hollywood", "Blockbuster"),
    ),
    "Places": WordCategory(
        words=("Paris", "Tokyo", "New York", "London", "Sydney", "Rome", "Dubai", "Singapore",
               "Barcelona", "Amsterdam", "Las Vegas", "Hawaii", "Maldives", "Venice", "Cairo",
               "Moscow", "Rio", "Miami", "Berlin", "Toronto"),
        hints=("Location", "Geography", "Destination", "Travel", "City"),
    ),
    "Objects": WordCategory(
        words=("Umbrella", "Telescope", "Scissors", "Candle", "Mirror", "Clock", "Lamp", "Piano",
               "Guitar", "Camera", "Bicycle", "Skateboard", "Surfboard", "Microphone",
               "Headphones", "Sunglasses", "Wallet", "Backpack", "Laptop", "Phone"),
        hints=("Thing", "Item", "Tool", "Gadget", "Equipment"),
    ),
    "Food": WordCategory(
        words=("Pizza", "Sushi", "Burger", "Taco", "Pasta", "Croissant", "Ramen", "Steak",
               "Salad", "Pancakes", "Ice Cream", "Chocolate", "Popcorn", "Donut", "Waffles",
               "Curry", "Burrito", "Dim Sum", "Fondue", "Paella"),
        hints=("Cuisine", "Meal", "Dish", "Snack", "Delicacy"),
    ),
    "Games": WordCategory(
        words=("Chess", "Monopoly", "Poker", "Tetris", "Mario", "Minecraft", "Fortnite", "Soccer",
               "Basketball", "Tennis", "Golf", "Bowling", "Darts", "Pool", "Jenga", "Scrabble",
               "Uno", "Twister", "Charades", "Pictionary"),
        hints=("Recreation", "Sport", "Activity", "Competition", "Entertainment"),
    ),
    "Animals": WordCategory(
        words=("Elephant", "Penguin", "Dolphin", "Tiger", "Giraffe", "Kangaroo", "Octopus",
               "Flamingo", "Peacock", "Panda", "Koala", "Gorilla", "Cheetah", "Owl", "Eagle",
               "Shark", "Whale", "Jellyfish", "Butterfly", "Chameleon"),
        hints=("Creature", "Wildlife", "Nature", "Living thing", "Species"),
    ),
    "Professions": WordCategory(
        words=("Doctor", "Astronaut", "Chef", "Pilot", "Detective", "Firefighter", "Teacher",
               "Scientist", "Artist", "Musician", "Actor", "Photographer", "Architect",
               "Engineer", "Lawyer", "Nurse", "Veterinarian", "Journalist", "Athlete", "Dancer"),
        hints=("Career", "Occupation", "Job", "Work", "Profession"),
    ),
    "Technology": WordCategory(
        words=("Robot", "Drone", "Satellite", "Laser", "Hologram", "Virtual Reality",
               "Cryptocurrency", "Algorithm", "Firewall", "Cloud", "Bluetooth", "WiFi", "GPS",
               "Touchscreen", "3D Printer", "Electric Car", "Solar Panel", "Smart Watch",
               "Alexa", "Tesla"),
        hints=("Innovation", "Digital", "Future", "Science", "Invention"),
    ),
}


class WordCatalog:
    """Category → (words, hints) lookup with uniform random draws"""

    def __init__(self, categories: Optional[Dict[str, WordCategory]] = None,
                 fallback: str = FALLBACK_CATEGORY):
        self.categories = dict(categories if categories is not None else DEFAULT_CATEGORIES)
        self.fallback = fallback

    def known(self, names: Sequence[str]) -> List[str]:
        return [name for name in names if name in self.categories]

    def draw(self, names: Sequence[str], rng: Optional[random.Random] = None) -> SecretDraw:
        """Pick a category uniformly, then a word and an independent hint from it"""
        rng = rng or random
        valid = self.known(names)
        if not valid:
            logger.warning(f"No known categories in {list(names)}, falling back to {self.fallback}")
            valid = [self.fallback]

        category_name = rng.choice(valid)
        category = self.categories[category_name]
        return SecretDraw(
            category=category_name,
            word=rng.choice(list(category.words)),
            hint=rng.choice(list(category.hints)),
        )


# Global catalog instance
word_catalog = WordCatalog()
