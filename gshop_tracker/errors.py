# gshop_tracker/errors.py

"""Exception types surfaced by the scrape pipeline.

Missing markup and failed clicks are not represented here: the parser
degrades them to empty fields and the section expander stops early.
"""


class ScrapeError(Exception):
    """Base class for failures of a single scrape invocation."""


class ValidationError(ScrapeError):
    """A required input (the product URL) is missing or unusable."""


class NavigationError(ScrapeError):
    """The browser could not load the target page."""


class ContentTimeoutError(ScrapeError):
    """The primary content marker never appeared, even after a CAPTCHA pass."""


class PersistenceError(ScrapeError):
    """The product store rejected or failed to write a record."""
