"""pdfqa — chunk, summarize and question a PDF document."""

__version__ = "0.1.0"
