"""Example books for trying out an empty shelf."""

import logging

from bookshelf.models import ReadingStatus, create_book
from bookshelf.storage import BookStorage

logger = logging.getLogger(__name__)

_COVERS = "https://images-na.ssl-images-amazon.com/images/S/compressed.photo.goodreads.com/books"

SAMPLE_BOOKS: list[dict] = [
    {
        "title": "The Midnight Library",
        "author": "Matt Haig",
        "coverUrl": f"{_COVERS}/1602190253i/52578297.jpg",
        "status": ReadingStatus.READ,
        "rating": 5,
        "review": "A beautiful exploration of life choices and parallel universes. "
        "Made me think about all the paths I could have taken.",
    },
    {
        "title": "Project Hail Mary",
        "author": "Andy Weir",
        "coverUrl": f"{_COVERS}/1597695864i/54493401.jpg",
        "status": ReadingStatus.CURRENTLY_READING,
        "rating": None,
        "review": "",
    },
    {
        "title": "The Seven Husbands of Evelyn Hugo",
        "author": "Taylor Jenkins Reid",
        "coverUrl": f"{_COVERS}/1664729357i/32620332.jpg",
        "status": ReadingStatus.READ,
        "rating": 5,
        "review": "Absolutely captivating! Could not put this book down. "
        "The characters felt so real and alive.",
    },
    {
        "title": "Tomorrow, and Tomorrow, and Tomorrow",
        "author": "Gabrielle Zevin",
        "coverUrl": f"{_COVERS}/1636978687i/58784475.jpg",
        "status": ReadingStatus.WANT_TO_READ,
        "rating": None,
        "review": "",
    },
    {
        "title": "Fourth Wing",
        "author": "Rebecca Yarros",
        "coverUrl": f"{_COVERS}/1701980900i/61431922.jpg",
        "status": ReadingStatus.CURRENTLY_READING,
        "rating": 4,
        "review": "Great dragon fantasy! The romance is a bit much but the world-building is fantastic.",
    },
    {
        "title": "Atomic Habits",
        "author": "James Clear",
        "coverUrl": f"{_COVERS}/1655988385i/40121378.jpg",
        "status": ReadingStatus.READ,
        "rating": 5,
        "review": "Life-changing approach to building good habits. Practical and backed by research.",
    },
    {
        "title": "The Invisible Life of Addie LaRue",
        "author": "V.E. Schwab",
        "coverUrl": f"{_COVERS}/1584633432i/50623864.jpg",
        "status": ReadingStatus.WANT_TO_READ,
        "rating": None,
        "review": "",
    },
    {
        "title": "A Court of Thorns and Roses",
        "author": "Sarah J. Maas",
        "coverUrl": f"{_COVERS}/1619549650i/16096824.jpg",
        "status": ReadingStatus.WANT_TO_READ,
        "rating": None,
        "review": "",
    },
    {
        "title": "The Song of Achilles",
        "author": "Madeline Miller",
        "coverUrl": f"{_COVERS}/1352083600i/13623848.jpg",
        "status": ReadingStatus.READ,
        "rating": 5,
        "review": "Beautifully written retelling of the Iliad. "
        "Patroclus and Achilles' relationship is so moving.",
    },
    {
        "title": "Thinking, Fast and Slow",
        "author": "Daniel Kahneman",
        "coverUrl": f"{_COVERS}/1317793965i/11468377.jpg",
        "status": ReadingStatus.WANT_TO_READ,
        "rating": None,
        "review": "",
    },
]


async def populate_sample_data(storage: BookStorage) -> int:
    """Add every sample book to ``storage``. Existing books are kept.

    Returns:
        Number of books stored.
    """
    added = 0
    for data in SAMPLE_BOOKS:
        if await storage.add(create_book(data)) is not None:
            added += 1
    logger.info("Added %d sample books to the bookshelf", added)
    return added
