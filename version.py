"""
Sheet Translator - Version Information
"""

__version__ = "1.0.0"
__description__ = "Rate-limited, deduplicating spreadsheet translation through a completion service"
__license__ = "MIT"
