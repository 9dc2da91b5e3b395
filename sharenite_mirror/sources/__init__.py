# Sources package
from .base import ListingSource, DetailSource, LookupProvider
from .sharenite import ShareniteSource
from .igdb import IGDBCoverProvider
