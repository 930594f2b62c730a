"""Web application: streaming proxy and admin API."""
