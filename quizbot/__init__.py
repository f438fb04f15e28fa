"""Discord quiz bot backed by Google Sheets question sets."""
