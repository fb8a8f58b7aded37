"""Channel subscription service: connection, LISTEN and notification intake."""
