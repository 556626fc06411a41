"""PlagCheck: content-addressed submission storage with exact-match plagiarism detection."""

__version__ = "0.1.0"
