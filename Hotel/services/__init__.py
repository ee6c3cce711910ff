"""Business operations behind the API views."""
