"""Genre options advertised through the catalog ``genre`` extra."""

from __future__ import annotations


STATIC_GENRES: tuple[str, ...] = (
    "Action",
    "Adventure",
    "Animation",
    "Biography",
    "Comedy",
    "Crime",
    "Documentary",
    "Drama",
    "Family",
    "Fantasy",
    "Game-Show",
    "History",
    "Horror",
    "Music",
    "Musical",
    "Mystery",
    "News",
    "Reality-TV",
    "Romance",
    "Sci-Fi",
    "Sport",
    "Talk-Show",
    "Thriller",
    "War",
    "Western",
)


def genre_matches(genres: list[str] | tuple[str, ...], wanted: str) -> bool:
    """Case-insensitive membership test used by catalog filtering."""

    target = wanted.strip().casefold()
    if not target:
        return True
    return any(str(genre).strip().casefold() == target for genre in genres)
