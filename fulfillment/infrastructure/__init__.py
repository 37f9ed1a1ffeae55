"""Infrastructure layer - database, security, adapters and queues."""
