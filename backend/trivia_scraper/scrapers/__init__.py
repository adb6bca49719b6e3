"""Extractor package — import all extractors to trigger @register_extractor decorators."""

from trivia_scraper.scrapers.question_one import QuestionOneExtractor  # noqa: F401
from trivia_scraper.scrapers.quizmeisters import QuizmeistersExtractor  # noqa: F401
