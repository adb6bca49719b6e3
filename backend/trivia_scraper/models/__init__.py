"""Models package — import every model so string relationships resolve."""

from trivia_scraper.models.base import Base  # noqa: F401
from trivia_scraper.models.source import Source  # noqa: F401
from trivia_scraper.models.scrape_run import ScrapeRun  # noqa: F401
from trivia_scraper.models.venue import Venue  # noqa: F401
from trivia_scraper.models.performer import Performer  # noqa: F401
from trivia_scraper.models.event import Event, EventSource  # noqa: F401
from trivia_scraper.models.image_record import ImageRecord  # noqa: F401
