"""pagesnap — serves an adaptively refreshed screenshot of a web page."""
